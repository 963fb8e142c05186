from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from fitgd.application.dtos import CommandBatch
from fitgd.domain.errors import ValidationResult
from fitgd.domain.models.character import Character, Trait, TraitCategory
from fitgd.domain.models.turn_state import TraitTransaction, TraitTransactionMode

CONSOLIDATE_TRAIT_COUNT = 3


def validate_trait_transaction(character: Character, transaction: Optional[TraitTransaction]) -> ValidationResult:
    if transaction is None:
        return ValidationResult.ok()

    if transaction.mode is TraitTransactionMode.EXISTING:
        trait = character.find_trait(transaction.selected_trait_id or "")
        if trait is None or trait.disabled:
            return ValidationResult.fail("invalid-trait-transaction", trait_id=transaction.selected_trait_id)
        return ValidationResult.ok()

    if not (transaction.new_trait_name or "").strip():
        return ValidationResult.fail("invalid-trait-transaction", mode=transaction.mode.value)

    if transaction.mode is TraitTransactionMode.CONSOLIDATE:
        ids = list(dict.fromkeys(transaction.trait_ids_to_remove))
        if len(ids) != CONSOLIDATE_TRAIT_COUNT or len(ids) != len(transaction.trait_ids_to_remove):
            return ValidationResult.fail("invalid-trait-transaction", trait_ids=list(transaction.trait_ids_to_remove))
        missing = [trait_id for trait_id in ids if character.find_trait(trait_id) is None]
        if missing:
            return ValidationResult.fail("invalid-trait-transaction", missing_trait_ids=missing)
    return ValidationResult.ok()


def build_trait_transaction_commands(
    character: Character,
    transaction: TraitTransaction,
    *,
    new_id: Callable[[str], str],
    now: float,
) -> CommandBatch:
    """Character mutations for the transaction; ``existing`` changes nothing."""
    batch = CommandBatch()
    if transaction.mode is TraitTransactionMode.EXISTING:
        return batch

    if transaction.mode is TraitTransactionMode.CONSOLIDATE:
        for trait_id in transaction.trait_ids_to_remove:
            batch.add("characters/removeTrait", character_id=character.id, trait_id=trait_id)
        category = TraitCategory.GROUPED
    else:
        category = TraitCategory.FLASHBACK

    trait = Trait(
        id=new_id("trait"),
        name=str(transaction.new_trait_name or "").strip(),
        category=category,
        acquired_at=float(now),
        description=transaction.new_trait_description,
    )
    batch.add("characters/addTrait", character_id=character.id, trait=trait.to_dict())
    return batch

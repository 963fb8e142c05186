import logging
import os

from fitgd.application.config import GameConfig, load_game_config
from fitgd.application.services.event_bus import EventBus
from fitgd.application.services.game_store import GameStore
from fitgd.application.services.history_service import HistoryService
from fitgd.application.services.notifications import register_notification_handlers
from fitgd.application.services.turn_service import TurnService
from fitgd.infrastructure.inmemory.inmemory_history_repo import InMemoryHistoryRepository
from fitgd.infrastructure.inmemory.inmemory_snapshot_repo import InMemorySnapshotRepository
from fitgd.infrastructure.randomness import RandomDiceRoller

logger = logging.getLogger(__name__)


def _build_roller():
    seed = os.getenv("FITGD_DICE_SEED", "").strip()
    return RandomDiceRoller(seed=int(seed)) if seed else RandomDiceRoller()


def _build_service(history_repo, snapshot_repo, config: GameConfig, roller=None, sink=None) -> TurnService:
    event_bus = EventBus()
    store = GameStore(history_repo, config=config, event_bus=event_bus)
    history = HistoryService(history_repo, snapshot_repo, config=config)
    register_notification_handlers(event_bus, state_provider=lambda: store.state, sink=sink)
    return TurnService(store, history, roller or _build_roller())


def _build_inmemory_turn_service(config: GameConfig, roller=None, sink=None) -> TurnService:
    return _build_service(InMemoryHistoryRepository(), InMemorySnapshotRepository(), config, roller, sink)


def _build_sql_turn_service(config: GameConfig, roller=None, sink=None) -> TurnService:
    from fitgd.infrastructure.db.sql.repos import SqlHistoryRepository, SqlSnapshotRepository, ensure_schema

    # Early connectivity check so the in-memory fallback happens before play starts.
    ensure_schema()
    service = _build_service(SqlHistoryRepository(), SqlSnapshotRepository(), config, roller, sink)
    result = service.restore()
    if result.replayed or result.from_snapshot:
        print(f"Restored session ({result.replayed} command(s) replayed).")
    return service


def create_turn_service(roller=None, sink=None, config: GameConfig | None = None) -> TurnService:
    config = config or load_game_config()
    if os.getenv("FITGD_DATABASE_URL"):
        try:
            return _build_sql_turn_service(config, roller, sink)
        except Exception as exc:  # pragma: no cover - best-effort fallback
            logger.warning("Database unavailable; using in-memory history", extra={"reason": str(exc)})
            print(f"Database unavailable, falling back to in-memory. Reason: {exc}")

    return _build_inmemory_turn_service(config, roller, sink)

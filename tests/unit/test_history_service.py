import itertools
import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from fitgd.application.config import GameConfig
from fitgd.application.services.game_store import GameStore
from fitgd.application.services.history_service import (
    HistoryService,
    is_orphaned,
    prune_orphaned,
    referenced_entity_ids,
    replay,
    target_entity_id,
)
from fitgd.application.services.turn_service import TurnService
from fitgd.domain.models.clock import ClockType
from fitgd.domain.models.command import Command, CommandHistoryEntry
from fitgd.infrastructure.inmemory.inmemory_history_repo import InMemoryHistoryRepository
from fitgd.infrastructure.inmemory.inmemory_snapshot_repo import InMemorySnapshotRepository
from fitgd.infrastructure.randomness import ScriptedDiceRoller


def _service(*faces: int) -> tuple[TurnService, InMemoryHistoryRepository]:
    history_repo = InMemoryHistoryRepository()
    ticks = itertools.count(1000)
    store = GameStore(history_repo, config=GameConfig(), clock=lambda: float(next(ticks)))
    history = HistoryService(history_repo, InMemorySnapshotRepository(), config=store.config, clock=lambda: 5000.0)
    service = TurnService(store, history, ScriptedDiceRoller(faces))
    service.create_character("Kess", approaches={"force": 2}, character_id="kess")
    service.create_character("Orrin", approaches={"guile": 2}, character_id="orrin")
    service.create_crew("Ashen Lancers", ["kess", "orrin"], crew_id="lancers")
    return service, history_repo


def _play_failed_turn(service: TurnService) -> None:
    service.begin_turn("kess")
    service.set_action_plan("kess", "force")
    service.push("kess")
    service.commit_roll("kess")
    service.set_consequence("kess", "harm", harm_subtype="physical")
    service.apply_consequence("kess")


class ReplayTests(unittest.TestCase):
    def test_replaying_history_rebuilds_identical_state(self) -> None:
        service, repo = _service(1, 2, 3)
        _play_failed_turn(service)

        rebuilt = replay(repo.list_all())

        self.assertEqual(service.state.to_dict(), rebuilt.to_dict())

    def test_replay_does_not_need_dice(self) -> None:
        service, repo = _service(1, 2, 3)
        _play_failed_turn(service)

        first = replay(repo.list_all())
        second = replay(repo.list_all())

        self.assertEqual(first.to_dict(), second.to_dict())
        self.assertEqual([1, 2, 3], [entry for entry in repo.list_all() if entry.type == "turns/setRollResult"][0].payload["dice"])


class SnapshotTests(unittest.TestCase):
    def test_load_uses_latest_snapshot_plus_newer_commands(self) -> None:
        service, _ = _service(1, 2, 3)
        service.snapshot()
        _play_failed_turn(service)

        result = service.history.load()

        self.assertTrue(result.from_snapshot)
        self.assertGreater(result.replayed, 0)
        self.assertEqual(service.state.to_dict(), result.state.to_dict())

    def test_load_without_snapshot_replays_everything(self) -> None:
        service, repo = _service()

        result = service.history.load()

        self.assertFalse(result.from_snapshot)
        self.assertEqual(repo.count(), result.replayed)

    def test_restore_installs_loaded_state(self) -> None:
        service, _ = _service()
        expected = service.state.to_dict()
        service.store.replace_state(replay([]))

        service.restore()

        self.assertEqual(expected, service.state.to_dict())

    def test_prune_all_snapshots_then_clears_history(self) -> None:
        service, repo = _service(1, 2, 3)
        _play_failed_turn(service)
        expected = service.state.to_dict()

        report = service.prune_history()

        self.assertEqual(0, repo.count())
        self.assertEqual(0, report.remaining)
        self.assertGreater(report.removed, 0)
        loaded = service.history.load()
        self.assertTrue(loaded.from_snapshot)
        self.assertEqual(0, loaded.replayed)
        self.assertEqual(expected, loaded.state.to_dict())

    def test_list_after_unknown_command_returns_everything(self) -> None:
        _, repo = _service()

        self.assertEqual(repo.count(), len(repo.list_after("cmd-999")))
        self.assertEqual(repo.count() - 1, len(repo.list_after("cmd-1")))


class OrphanPruningTests(unittest.TestCase):
    def test_target_and_referenced_ids(self) -> None:
        membership = Command("crews/addCharacterToCrew", {"crew_id": "lancers", "character_id": "kess"})

        self.assertEqual("lancers", target_entity_id(membership))
        self.assertEqual({"lancers", "kess"}, referenced_entity_ids(membership))
        self.assertEqual("clock-9", target_entity_id(Command("clocks/createClock", {"id": "clock-9"})))

    def test_deletion_commands_are_never_orphaned(self) -> None:
        entry = CommandHistoryEntry("cmd-1", "characters/deleteCharacter", {"character_id": "ghost"}, 1.0)

        self.assertFalse(is_orphaned(entry, set()))

    def test_commands_for_deleted_entities_are_pruned(self) -> None:
        service, repo = _service()
        clock = service.create_clock("orrin", ClockType.HARM, "morale")
        service.clocks.add_segments(clock.id, 2)
        service.delete_character("orrin")
        before = service.state.to_dict()

        report = service.prune_orphaned_history()

        types = [entry.type for entry in repo.list_all()]
        self.assertGreater(report.removed, 0)
        self.assertNotIn("clocks/addSegments", types)
        self.assertIn("characters/deleteCharacter", types)
        self.assertEqual(1, types.count("characters/createCharacter"))
        self.assertEqual(before, replay(repo.list_all()).to_dict())

    def test_pruning_is_idempotent(self) -> None:
        service, repo = _service()
        service.delete_character("orrin")
        service.prune_orphaned_history()
        remaining = [entry.command_id for entry in repo.list_all()]

        report = service.prune_orphaned_history()

        self.assertEqual(0, report.removed)
        self.assertEqual(remaining, [entry.command_id for entry in repo.list_all()])

    def test_snapshot_marker_entry_survives_pruning(self) -> None:
        service, repo = _service()
        snapshot = service.snapshot()
        service.delete_character("orrin")

        prune_result = prune_orphaned(repo.list_all(), service.state, keep_ids=[snapshot.last_command_id])
        service.prune_orphaned_history()

        self.assertIn(snapshot.last_command_id, [entry.command_id for entry in prune_result])
        self.assertIn(snapshot.last_command_id, [entry.command_id for entry in repo.list_all()])
        self.assertEqual(service.state.to_dict(), service.history.load().state.to_dict())


class HistoryStatsTests(unittest.TestCase):
    def test_stats_count_commands_by_family(self) -> None:
        service, _ = _service()

        stats = service.history_stats()

        self.assertEqual(5, stats.total_commands)
        self.assertEqual({"characters": 2, "crews": 3}, stats.by_family)
        self.assertEqual(1000.0, stats.first_timestamp)
        self.assertEqual(1004.0, stats.last_timestamp)
        self.assertEqual(4.0, stats.time_span)


if __name__ == "__main__":
    unittest.main()

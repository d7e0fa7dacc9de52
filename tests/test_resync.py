"""Tests for cache restore, page-visibility resync and track changes."""

from __future__ import annotations

from decksync.controls import ButtonKind
from decksync.resync import RestoreOutcome
from decksync.state import ACK_TIMER, RESYNC_TIMER

from conftest import MUTE, SOLO, Components, make_context


class TestRestoreContext:
    def test_missing_cache_neutralizes(self, parts: Components):
        ctx = make_context("a")
        ctx.active = True
        parts.registry.add(ctx)

        assert parts.resync.restore_context("a") == RestoreOutcome.NEUTRALIZED
        assert ctx.active is False
        assert parts.commits == [[("a", False)]]

    def test_fresh_cache_is_restored(self, parts: Components):
        parts.registry.add(make_context("a"))
        parts.session.cache.record(MUTE, True, parts.clock())

        assert parts.resync.restore_context("a") == RestoreOutcome.RESTORED
        assert parts.registry.get("a").active is True
        assert parts.commits == [[("a", True)]]

    def test_stale_cache_skipped_unless_forced(self, parts: Components):
        parts.registry.add(make_context("a"))
        parts.session.cache.record(MUTE, True, parts.clock())
        parts.clock.advance(4.0)

        assert parts.resync.restore_context("a") == RestoreOutcome.SKIPPED_STALE
        assert parts.commits == []
        assert parts.registry.get("a").active is False

        assert parts.resync.restore_context("a", force_age=True) == RestoreOutcome.RESTORED
        assert parts.commits == [[("a", True)]]

    def test_unknown_context(self, parts: Components):
        assert parts.resync.restore_context("ghost") == RestoreOutcome.UNKNOWN_CONTEXT
        parts.registry.add(make_context("art", kind=ButtonKind.ARTICULATION, slot=0))
        assert parts.resync.restore_context("art") == RestoreOutcome.UNKNOWN_CONTEXT
        assert parts.commits == []


class TestDeviceResync:
    def test_batches_every_command_context(self, parts: Components):
        parts.registry.add(make_context("a", control=MUTE))
        parts.registry.add(make_context("b", control=SOLO))
        parts.registry.add(make_context("art", kind=ButtonKind.ARTICULATION, slot=0))
        parts.registry.add(make_context("other", device_id="deck-2"))
        parts.session.cache.record(MUTE, True, parts.clock() - 60.0)

        counts = parts.resync.resync_device("deck")

        assert counts == {RestoreOutcome.RESTORED: 1, RestoreOutcome.NEUTRALIZED: 1}
        assert parts.commits == [[("a", True), ("b", False)]]

    def test_page_edge_schedules_one_resync(self, parts: Components):
        edges: list[tuple[str, bool]] = []
        parts.callbacks.register_visibility(ButtonKind.COMMAND, lambda device_id, visible: edges.append((device_id, visible)))
        parts.session.cache.record(MUTE, True, parts.clock())

        parts.show(make_context("a"))
        parts.advance(0.1)
        parts.show(make_context("b"))
        parts.advance(0.1)
        parts.show(make_context("c"))
        assert edges == [("deck", True)]
        assert parts.commits == []

        # Due resync_delay after the first appearance, not the last
        parts.advance(0.07)
        assert parts.commits == [[("a", True), ("b", True), ("c", True)]]
        assert not parts.timers.is_pending((RESYNC_TIMER, "deck"))

    def test_hidden_page_cancels_resync(self, parts: Components):
        parts.show(make_context("a"))
        parts.show(make_context("b"))

        parts.hide("a")
        assert parts.timers.is_pending((RESYNC_TIMER, "deck"))
        parts.hide("b")
        assert not parts.timers.is_pending((RESYNC_TIMER, "deck"))

        parts.advance(1.0)
        assert parts.commits == []

    def test_articulation_page_does_not_schedule(self, parts: Components):
        parts.show(make_context("art", kind=ButtonKind.ARTICULATION, slot=0))
        assert parts.timers.pending_count() == 0


class TestTrackChange:
    def test_clears_gates_and_schedules_visible_pages(self, parts: Components):
        parts.show(make_context("a"))
        parts.registry.add(make_context("hidden", device_id="deck-2"))
        parts.advance(0.3)

        parts.dispatcher.on_press_intent("a")
        assert parts.timers.is_pending((ACK_TIMER, MUTE))

        assert parts.resync.on_track_changed("Violin KS") is True
        assert parts.session.awaiting_ack == set()
        assert parts.session.next_allowed == {}
        assert parts.session.last_tap == {}
        assert not parts.timers.is_pending((ACK_TIMER, MUTE))
        assert parts.timers.is_pending((RESYNC_TIMER, "deck"))
        assert not parts.timers.is_pending((RESYNC_TIMER, "deck-2"))

    def test_same_track_is_ignored(self, parts: Components):
        parts.show(make_context("a"))
        parts.advance(0.3)
        parts.resync.on_track_changed("Violin KS")
        parts.advance(0.3)

        assert parts.resync.on_track_changed("VIOLIN KS ") is False
        assert parts.timers.pending_count() == 0

    def test_per_track_state_after_switch(self, parts: Components):
        parts.show(make_context("a"))
        parts.resync.on_track_changed("Violin KS")
        parts.settler.on_feedback(MUTE.channel, MUTE.controller, 127)
        parts.advance(0.3)
        assert parts.registry.get("a").active is True

        parts.resync.on_track_changed("Cello KS")
        parts.advance(0.3)
        assert parts.registry.get("a").active is False

        parts.resync.on_track_changed("Violin KS")
        parts.advance(0.3)
        assert parts.registry.get("a").active is True

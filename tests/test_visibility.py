"""Tests for per-device page visibility tracking."""

from __future__ import annotations

import pytest

from decksync.callbacks import CallbackManager
from decksync.controls import ButtonKind
from decksync.visibility import VisibilityTracker


@pytest.fixture
def edges() -> list[tuple[ButtonKind, str, bool]]:
    return []


@pytest.fixture
def tracker(edges) -> VisibilityTracker:
    callbacks = CallbackManager()
    for kind in ButtonKind:
        callbacks.register_visibility(kind, lambda device_id, visible, kind=kind: edges.append((kind, device_id, visible)))
    return VisibilityTracker(callbacks)


class TestEdges:
    def test_only_first_appearance_is_an_edge(self, tracker, edges):
        assert tracker.appear("deck", ButtonKind.COMMAND) is True
        assert tracker.appear("deck", ButtonKind.COMMAND) is None
        assert tracker.appear("deck", ButtonKind.COMMAND) is None

        assert tracker.count("deck", ButtonKind.COMMAND) == 3
        assert edges == [(ButtonKind.COMMAND, "deck", True)]

    def test_only_last_disappearance_is_an_edge(self, tracker, edges):
        tracker.appear("deck", ButtonKind.COMMAND)
        tracker.appear("deck", ButtonKind.COMMAND)
        edges.clear()

        assert tracker.disappear("deck", ButtonKind.COMMAND) is None
        assert tracker.disappear("deck", ButtonKind.COMMAND) is False
        assert edges == [(ButtonKind.COMMAND, "deck", False)]
        assert not tracker.is_visible("deck", ButtonKind.COMMAND)

    def test_kinds_and_devices_are_independent(self, tracker, edges):
        tracker.appear("deck", ButtonKind.COMMAND)
        tracker.appear("deck", ButtonKind.ARTICULATION)
        tracker.appear("deck-2", ButtonKind.ARTICULATION)

        assert tracker.visible_devices(ButtonKind.COMMAND) == ["deck"]
        assert sorted(tracker.visible_devices(ButtonKind.ARTICULATION)) == ["deck", "deck-2"]
        assert len(edges) == 3


class TestFloor:
    def test_disappear_without_appear_is_ignored(self, tracker, edges):
        assert tracker.disappear("deck", ButtonKind.COMMAND) is None
        assert tracker.count("deck", ButtonKind.COMMAND) == 0
        assert edges == []

    def test_count_never_negative(self, tracker, edges):
        tracker.appear("deck", ButtonKind.COMMAND)
        tracker.disappear("deck", ButtonKind.COMMAND)
        tracker.disappear("deck", ButtonKind.COMMAND)
        assert tracker.count("deck", ButtonKind.COMMAND) == 0

        assert tracker.appear("deck", ButtonKind.COMMAND) is True

    def test_forget_device_reports_no_edge(self, tracker, edges):
        tracker.appear("deck", ButtonKind.COMMAND)
        edges.clear()
        tracker.forget_device("deck")
        assert edges == []
        assert tracker.visible_devices(ButtonKind.COMMAND) == []

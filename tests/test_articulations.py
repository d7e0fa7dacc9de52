"""Tests for the ArticulationBoard."""

from __future__ import annotations

import pytest

from decksync.articulations import NOTE_OFF_TIMER, ArticulationBoard
from decksync.config import EngineConfig
from decksync.controls import ButtonKind, VisualState
from decksync.profiles import Articulation, TrackProfile
from decksync.registry import ContextRegistry
from decksync.timers import TimerService
from decksync.utils import DEFAULT_TRACK_COLOR

from conftest import FakeClock, RecordingSurface, make_context

PROFILE = TrackProfile(
    title="Violin 1",
    articulations=[
        Articulation(name="Legato", note=24),
        Articulation(name="Spiccato", note=25),
        Articulation(name="Text only"),
    ],
    profile_key="Violin",
)


class NoteRecorder:
    def __init__(self) -> None:
        self.calls: list[tuple[int, bool]] = []
        self.available = True

    def __call__(self, note: int, on: bool) -> bool:
        if not self.available:
            return False
        self.calls.append((note, on))
        return True


@pytest.fixture
def notes() -> NoteRecorder:
    return NoteRecorder()


@pytest.fixture
def registry() -> ContextRegistry:
    registry = ContextRegistry()
    registry.add(make_context("title", kind=ButtonKind.ARTICULATION))
    for slot in range(4):
        registry.add(make_context(f"art-{slot}", kind=ButtonKind.ARTICULATION, slot=slot))
    return registry


@pytest.fixture
def timers(clock: FakeClock) -> TimerService:
    return TimerService(clock)


@pytest.fixture
def board(registry, timers, surface, notes) -> ArticulationBoard:
    return ArticulationBoard(registry, timers, surface, EngineConfig(), send_note=notes)


class TestVisualState:
    def test_defaults_before_any_profile(self, board, registry):
        assert board.visual_state(registry.get("title")) == VisualState(label="", color=DEFAULT_TRACK_COLOR)
        assert board.visual_state(registry.get("art-0")) == VisualState()

    def test_profile_slots(self, board, registry):
        board.ensure_device("deck")
        board.apply_profile(PROFILE)

        assert board.visual_state(registry.get("title")).label == "Violin 1"
        legato = board.visual_state(registry.get("art-0"))
        assert legato.label == "Legato"
        assert legato.note_or_level == 24
        assert legato.color == DEFAULT_TRACK_COLOR
        assert board.visual_state(registry.get("art-2")).label == "Text only"
        assert board.visual_state(registry.get("art-3")) == VisualState()

    def test_new_device_gets_current_profile(self, board):
        board.apply_profile(PROFILE)
        assert board.ensure_device("deck-2").title == "Violin 1"


class TestRendering:
    def test_apply_profile_renders_known_devices(self, board, surface):
        board.ensure_device("deck")
        board.apply_profile(PROFILE)
        assert {context_id for context_id, _ in surface.renders} == {"title", "art-0", "art-1", "art-2", "art-3"}

    def test_page_edge_renders_device(self, board, surface):
        board.on_page_visibility("deck", True)
        assert len(surface.renders) == 5
        board.on_page_visibility("deck", False)
        assert len(surface.renders) == 5

    def test_set_color_rerenders(self, board, surface):
        board.ensure_device("deck")
        board.set_color("#112233")
        assert board.color == "#112233"
        assert surface.last_render("title").color == "#112233"


class TestPress:
    def test_press_pulses_note(self, board, registry, notes, timers, clock):
        board.apply_profile(PROFILE)
        assert board.on_press(registry.get("art-1")) is True
        assert notes.calls == [(25, True)]
        assert timers.is_pending((NOTE_OFF_TIMER, 25))

        clock.advance(0.2)
        timers.run_due()
        assert notes.calls == [(25, True), (25, False)]
        assert board.board("deck").selected_slot == 1

    def test_selection_moves(self, board, registry, surface):
        board.apply_profile(PROFILE)
        board.on_press(registry.get("art-0"))
        surface.renders.clear()

        board.on_press(registry.get("art-1"))
        assert [context_id for context_id, _ in surface.renders] == ["art-1", "art-0"]
        assert surface.last_render("art-0").selected is False
        assert surface.last_render("art-1").selected is True

    def test_slots_without_note_do_nothing(self, board, registry, notes):
        board.apply_profile(PROFILE)
        assert board.on_press(registry.get("title")) is False
        assert board.on_press(registry.get("art-2")) is False
        assert board.on_press(registry.get("art-3")) is False
        assert notes.calls == []

    def test_transport_down_keeps_selection(self, board, registry, notes, timers):
        board.apply_profile(PROFILE)
        notes.available = False
        assert board.on_press(registry.get("art-0")) is False
        assert board.board("deck").selected_slot is None
        assert timers.pending_count() == 0

    def test_new_profile_clears_selection(self, board, registry):
        board.apply_profile(PROFILE)
        board.on_press(registry.get("art-0"))
        board.apply_profile(PROFILE)
        assert board.board("deck").selected_slot is None

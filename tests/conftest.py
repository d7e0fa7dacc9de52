"""Shared fixtures: a manual clock, a recording surface and a recording MIDI transport."""

from __future__ import annotations

from typing import Any, Optional

import mido
import pytest

from decksync.callbacks import CallbackManager
from decksync.config import EngineConfig
from decksync.controls import ButtonContext, ButtonKind, ButtonMode, LogicalControl, VisualState
from decksync.dispatcher import CommandDispatcher
from decksync.engine import SyncEngine
from decksync.feedback import FeedbackSettler
from decksync.profiles import ProfileBook
from decksync.registry import ContextRegistry
from decksync.resync import ResyncCoordinator
from decksync.state import SessionState, TrackStateCache
from decksync.surface import SurfaceHost
from decksync.timers import TimerService
from decksync.visibility import VisibilityTracker

# ---------------------------------------------------------------------------
# Doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSurface(SurfaceHost):
    """SurfaceHost that remembers every call."""

    def __init__(self) -> None:
        self.commits: list[tuple[str, bool]] = []
        self.renders: list[tuple[str, VisualState]] = []

    def set_control_visual_state(self, context_id: str, active: bool) -> None:
        self.commits.append((context_id, active))

    def render_key(self, context_id: str, visual_state: VisualState) -> None:
        self.renders.append((context_id, visual_state))

    def last_render(self, context_id: str) -> Optional[VisualState]:
        for rendered_id, state in reversed(self.renders):
            if rendered_id == context_id:
                return state
        return None


class RecordingTransport:
    """Outbound MIDI sink; set available=False to simulate a closed port."""

    def __init__(self) -> None:
        self.messages: list[mido.Message] = []
        self.available = True

    def __call__(self, msg: mido.Message) -> bool:
        if not self.available:
            return False
        self.messages.append(msg)
        return True

    def control_changes(self) -> list[tuple[int, int, int]]:
        return [(m.channel, m.control, m.value) for m in self.messages if m.type == "control_change"]

    def notes(self) -> list[tuple[str, int]]:
        return [(m.type, m.note) for m in self.messages if m.type in ("note_on", "note_off")]


class Components:
    """Dispatcher, settler and resync coordinator wired to one session, without an engine."""

    def __init__(self, clock: FakeClock, config: Optional[EngineConfig] = None) -> None:
        self.clock = clock
        self.config = config or EngineConfig()
        self.timers = TimerService(clock)
        self.registry = ContextRegistry()
        self.session = SessionState(TrackStateCache(self.config.cache_mode))
        self.callbacks = CallbackManager()
        self.visibility = VisibilityTracker(self.callbacks)

        self.sent: list[tuple[LogicalControl, int]] = []
        self.commits: list[list[tuple[str, bool]]] = []
        self.transport_up = True

        self.dispatcher = CommandDispatcher(
            self.registry, self.session, self.timers, self.config, send=self.send, commit=self.commit
        )
        self.settler = FeedbackSettler(self.registry, self.session, self.timers, self.config, commit=self.commit)
        self.resync = ResyncCoordinator(
            self.registry, self.session, self.timers, self.visibility, self.config, commit=self.commit
        )
        self.callbacks.register_visibility(ButtonKind.COMMAND, self.resync.on_command_page_visibility)

    def send(self, control: LogicalControl, value: int) -> bool:
        if not self.transport_up:
            return False
        self.sent.append((control, value))
        return True

    def commit(self, updates) -> None:
        self.commits.append(list(updates))

    def show(self, context: ButtonContext) -> ButtonContext:
        """Register a context and count it as visible, like a host appearance."""
        self.registry.add(context)
        self.visibility.appear(context.device_id, context.kind)
        return context

    def hide(self, context_id: str) -> None:
        context = self.registry.remove(context_id)
        if context is not None:
            self.visibility.disappear(context.device_id, context.kind)

    def advance(self, seconds: float) -> int:
        self.clock.advance(seconds)
        return self.timers.run_due()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

MUTE = LogicalControl(channel=13, controller=10)
SOLO = LogicalControl(channel=13, controller=11)

PROFILES: dict[str, Any] = {
    "Violin": {
        "articulations": [
            {"name": "Legato", "note": 24},
            {"name": "Spiccato", "note": 25},
            {"name": "", "note": None},
            {"name": "Pizzicato", "note": 27},
        ],
    },
    "Cello": {
        "articulations": [
            {"name": "Sustain", "note": 36},
        ],
    },
}


def make_context(
    context_id: str,
    control: Optional[LogicalControl] = MUTE,
    mode: ButtonMode = ButtonMode.MOMENTARY,
    device_id: str = "deck",
    kind: ButtonKind = ButtonKind.COMMAND,
    slot: Optional[int] = None,
) -> ButtonContext:
    return ButtonContext(
        context_id=context_id,
        device_id=device_id,
        kind=kind,
        control=control if kind == ButtonKind.COMMAND else None,
        mode=mode,
        slot=slot,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def parts(clock: FakeClock, config: EngineConfig) -> Components:
    return Components(clock, config)


@pytest.fixture
def profiles() -> ProfileBook:
    return ProfileBook.from_dict(PROFILES)


@pytest.fixture
def engine(
    surface: RecordingSurface,
    config: EngineConfig,
    transport: RecordingTransport,
    profiles: ProfileBook,
    clock: FakeClock,
) -> SyncEngine:
    return SyncEngine(surface=surface, config=config, send=transport, profiles=profiles, clock=clock)

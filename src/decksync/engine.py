"""
SyncEngine - user-facing entry point of decksync.

Owns one bridge session: the timer service, the session store, the context
registry and the components that act on them. Host adapters feed events into
handle(); the main loop calls process_events() (or poll() when MIDI is wired
up elsewhere) to fire due timers and deliver queued MIDI input.
"""

import threading
import time
from functools import partial
from typing import Callable, Iterable, Optional

import mido

from decksync.articulations import ArticulationBoard
from decksync.callbacks import CallbackManager, CommitCallback, TrackCallback, VisibilityCallback, fire_all
from decksync.config import EngineConfig
from decksync.controls import ButtonContext, ButtonKind, LogicalControl
from decksync.dispatcher import CommandDispatcher
from decksync.events import (
    ContextAppeared,
    ContextDisappeared,
    DeviceConnected,
    DeviceDisconnected,
    Event,
    Feedback,
    KeyPressed,
    TrackChanged,
    TrackColorComponent,
)
from decksync.feedback import FeedbackSettler
from decksync.logging_config import get_logger
from decksync.midi_io import MIDIInterface
from decksync.profiles import ProfileBook, ProfileResolver
from decksync.protocol import HostProtocol
from decksync.registry import ContextRegistry
from decksync.resync import ResyncCoordinator, RestoreOutcome
from decksync.state import ACK_TIMER, SessionState, TrackStateCache
from decksync.surface import SurfaceHost
from decksync.timers import Clock, TimerService
from decksync.utils import RGBColor
from decksync.visibility import VisibilityTracker

logger = get_logger(__name__)

PROFILE_TIMER = "profile"
COLOR_TIMER = "color"

SendMessage = Callable[[mido.Message], bool]


class SyncEngine:
    """
    Command/feedback synchronization engine for one DAW session.

    Single-threaded: handle(), poll() and process_events() must be called
    from the same thread. The MIDI input thread only queues messages.
    """

    def __init__(
        self,
        surface: SurfaceHost,
        config: Optional[EngineConfig] = None,
        send: Optional[SendMessage] = None,
        profiles: Optional[ProfileResolver] = None,
        clock: Clock = time.monotonic,
    ):
        """
        Initialize engine.

        Args:
            surface: Control-surface host receiving UI commits and key renders
            config: Engine configuration (defaults if None)
            send: Outbound MIDI transport; None until connect_midi() or attach_transport()
            profiles: Articulation profile resolver (loaded from config.profiles_path if None)
            clock: Monotonic time source in seconds
        """
        self._config = config or EngineConfig()
        self._surface = surface
        self._send = send
        self._midi: Optional[MIDIInterface] = None

        if profiles is None:
            profiles = (
                ProfileBook.from_json_file(self._config.profiles_path)
                if self._config.profiles_path is not None
                else ProfileBook()
            )
        self._profiles = profiles

        self._protocol = HostProtocol(self._config.midi)
        self._timers = TimerService(clock)
        self._callbacks = CallbackManager()
        self._registry = ContextRegistry()
        self._session = SessionState(TrackStateCache(self._config.cache_mode))
        self._visibility = VisibilityTracker(self._callbacks)

        self._dispatcher = CommandDispatcher(
            self._registry,
            self._session,
            self._timers,
            self._config,
            send=self._send_command,
            commit=self._commit_states,
        )
        self._settler = FeedbackSettler(
            self._registry,
            self._session,
            self._timers,
            self._config,
            commit=self._commit_states,
        )
        self._resync = ResyncCoordinator(
            self._registry,
            self._session,
            self._timers,
            self._visibility,
            self._config,
            commit=self._commit_states,
        )
        self._articulations = ArticulationBoard(
            self._registry,
            self._timers,
            self._surface,
            self._config,
            send_note=self._send_note,
        )

        self._callbacks.register_visibility(ButtonKind.COMMAND, self._resync.on_command_page_visibility)
        self._callbacks.register_visibility(ButtonKind.ARTICULATION, self._articulations.on_page_visibility)

        self._devices: set[str] = set()
        self._color_components: dict[str, Optional[int]] = {"r": None, "g": None, "b": None}

    # Component access

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def timers(self) -> TimerService:
        return self._timers

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def registry(self) -> ContextRegistry:
        return self._registry

    @property
    def visibility(self) -> VisibilityTracker:
        return self._visibility

    @property
    def articulations(self) -> ArticulationBoard:
        return self._articulations

    @property
    def protocol(self) -> HostProtocol:
        return self._protocol

    @property
    def track_name(self) -> Optional[str]:
        return self._session.cache.track_name

    @property
    def devices(self) -> list[str]:
        return sorted(self._devices)

    # Transport

    def attach_transport(self, send: Optional[SendMessage]) -> None:
        """Set (or remove, with None) the outbound MIDI transport."""
        self._send = send

    def connect_midi(self) -> tuple[Optional[str], Optional[str]]:
        """
        Open the DAW ports named in the configuration and use them as transport.

        Returns:
            (input_name, output_name) actually opened

        Raises:
            IOError: If a matching port cannot be opened
        """
        if self._midi is not None:
            logger.warning("MIDI already connected")
            return self._midi.input_port_name, self._midi.output_port_name

        midi = MIDIInterface(on_message=self.on_midi_message)
        ports = midi.open(self._config.midi.input_port, self._config.midi.output_port)
        self._midi = midi
        self._send = midi.send_message
        return ports

    def disconnect_midi(self) -> None:
        if self._midi is None:
            return
        self._midi.close()
        self._midi = None
        self._send = None

    # Event processing

    def handle(self, event: Event) -> None:
        """
        Dispatch one inbound event.

        Never raises; handler failures are logged.
        """
        try:
            if isinstance(event, KeyPressed):
                self._on_key_pressed(event)
            elif isinstance(event, Feedback):
                self._settler.on_feedback(event.channel, event.controller, event.value)
            elif isinstance(event, ContextAppeared):
                self._on_context_appeared(event)
            elif isinstance(event, ContextDisappeared):
                self._on_context_disappeared(event)
            elif isinstance(event, TrackChanged):
                self._on_track_changed(event)
            elif isinstance(event, TrackColorComponent):
                self._on_color_component(event)
            elif isinstance(event, DeviceConnected):
                self._on_device_connected(event.device_id)
            elif isinstance(event, DeviceDisconnected):
                self._on_device_disconnected(event.device_id)
            else:
                logger.error(f"Unhandled event type: {type(event).__name__}")
        except Exception as e:
            logger.exception(f"Error handling {type(event).__name__}: {e}")

    def handle_all(self, events: Iterable[Event]) -> None:
        for event in events:
            self.handle(event)

    def on_midi_message(self, msg: mido.Message) -> None:
        """Decode a message from the DAW and handle it."""
        event = self._protocol.decode(msg)
        if event is not None:
            self.handle(event)

    def poll(self) -> int:
        """
        Fire due timers.

        Returns:
            Number of timer callbacks executed
        """
        return self._timers.run_due()

    def process_events(self) -> int:
        """
        Deliver queued MIDI input, then fire due timers.

        Call this regularly from the main loop.

        Returns:
            Number of MIDI messages and timer callbacks processed
        """
        processed = self._midi.process_pending_messages() if self._midi else 0
        return processed + self.poll()

    def run(self, stop: threading.Event, max_sleep: float = 0.005) -> None:
        """
        Main loop: process events until stop is set.

        Args:
            stop: Event that ends the loop
            max_sleep: Upper bound on idle sleep between iterations (seconds)
        """
        logger.info("Bridge running")
        while not stop.is_set():
            self.process_events()
            next_due = self._timers.next_due_in()
            sleep_for = max_sleep if next_due is None else min(max_sleep, next_due)
            stop.wait(sleep_for)
        logger.info("Bridge stopped")

    # Direct API

    def press(self, context_id: str) -> None:
        self.handle(KeyPressed(context_id=context_id))

    def feedback(self, channel: int, controller: int, value: int) -> None:
        self.handle(Feedback(channel=channel, controller=controller, value=value))

    def restore_context(self, context_id: str, force_age: bool = False) -> RestoreOutcome:
        return self._resync.restore_context(context_id, force_age=force_age)

    def is_awaiting_ack(self, control: LogicalControl) -> bool:
        return self._dispatcher.is_awaiting_ack(control)

    def clear(self) -> None:
        """Explicitly release every ack, cooldown and debounce gate."""
        self._session.clear_track_scoped()
        self._timers.cancel_where(lambda key: isinstance(key, tuple) and key[0] == ACK_TIMER)
        logger.info("Cleared all command gates")

    # Subscriptions

    def on_commit(self, callback: CommitCallback) -> None:
        """Register callback for UI commits: Function(context_id, active) -> None."""
        self._callbacks.register_commit(callback)

    def on_track_change(self, callback: TrackCallback) -> None:
        """Register callback for effective track changes: Function(track_name) -> None."""
        self._callbacks.register_track(callback)

    def on_visibility(self, kind: ButtonKind, callback: VisibilityCallback) -> None:
        """Register callback for page edges: Function(device_id, visible) -> None."""
        self._callbacks.register_visibility(kind, callback)

    # Context manager support

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect_midi()
        return False

    # Internal handlers

    def _on_device_connected(self, device_id: str) -> None:
        if device_id not in self._devices:
            self._devices.add(device_id)
            self._articulations.ensure_device(device_id)
            logger.info(f"Device connected: {device_id}")

    def _on_device_disconnected(self, device_id: str) -> None:
        removed = self._registry.remove_device(device_id)
        for context in removed:
            self._session.last_tap.pop(context.context_id, None)
        self._visibility.forget_device(device_id)
        self._resync.cancel_device_resync(device_id)
        self._articulations.forget_device(device_id)
        self._devices.discard(device_id)
        logger.info(f"Device disconnected: {device_id} ({len(removed)} contexts dropped)")

    def _on_context_appeared(self, event: ContextAppeared) -> None:
        # The host may announce buttons before the device itself
        self._on_device_connected(event.device_id)

        context = ButtonContext(
            context_id=event.context_id,
            device_id=event.device_id,
            kind=event.button_kind,
            control=event.control,
            mode=event.mode,
            slot=event.slot,
        )
        previous = self._registry.add(context)
        if previous is not None:
            self._visibility.disappear(previous.device_id, previous.kind)

        became_visible = self._visibility.appear(context.device_id, context.kind)

        if context.kind == ButtonKind.COMMAND:
            self._resync.restore_context(context.context_id, force_age=False)
        elif not became_visible:
            # A fresh page edge has already rendered the whole page
            self._articulations.render_context(context)

    def _on_context_disappeared(self, event: ContextDisappeared) -> None:
        context = self._registry.remove(event.context_id)
        if context is None:
            logger.debug(f"Disappearance of unknown context {event.context_id}")
            return
        self._session.last_tap.pop(context.context_id, None)
        self._visibility.disappear(context.device_id, context.kind)

    def _on_key_pressed(self, event: KeyPressed) -> None:
        context = self._registry.get(event.context_id)
        if context is None:
            logger.debug(f"Press on unknown context {event.context_id}")
            return
        if context.kind == ButtonKind.COMMAND:
            self._dispatcher.on_press_intent(context.context_id)
        else:
            self._articulations.on_press(context)

    def _on_track_changed(self, event: TrackChanged) -> None:
        if not self._resync.on_track_changed(event.track_name):
            logger.debug(f"Track unchanged: '{event.track_name}'")
            return

        self._callbacks.on_track_change(event.track_name)
        self._timers.schedule(
            PROFILE_TIMER,
            self._config.timing.track_debounce,
            partial(self._apply_profile, event.track_name),
        )

    def _apply_profile(self, track_name: str) -> None:
        try:
            profile = self._profiles.on_track_changed(track_name)
        except Exception as e:
            logger.exception(f"Profile lookup failed for '{track_name}': {e}")
            return
        self._articulations.apply_profile(profile)

    def _on_color_component(self, event: TrackColorComponent) -> None:
        self._color_components[event.component] = event.value
        self._timers.schedule(COLOR_TIMER, self._config.timing.color_settle, self._apply_color)

    def _apply_color(self) -> None:
        r, g, b = (self._color_components[c] for c in ("r", "g", "b"))
        if r is None or g is None or b is None:
            return
        color = RGBColor.from_midi_values(r, g, b).to_hex()
        if color == self._articulations.color:
            return
        logger.info(f"Track colour set: {color} (R{r} G{g} B{b})")
        self._articulations.set_color(color)

    def _commit_states(self, updates: Iterable[tuple[str, bool]]) -> None:
        batch = list(updates)
        fire_all([partial(self._surface.set_control_visual_state, context_id, active) for context_id, active in batch])
        for context_id, active in batch:
            self._callbacks.on_commit(context_id, active)

    def _send_command(self, control: LogicalControl, value: int) -> bool:
        if self._send is None:
            return False
        return self._send(self._protocol.encode_command(control, value))

    def _send_note(self, note: int, on: bool) -> bool:
        if self._send is None:
            return False
        return self._send(self._protocol.encode_note(note, on))

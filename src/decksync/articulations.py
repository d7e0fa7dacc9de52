"""
Articulation page state and rendering.

Each device shows the current track's articulations, one per key, plus an
instrument title key. Pressing an articulation sends its keyswitch note as a
short pulse and marks it selected. Articulation keys are rendered from a
VisualState through the SurfaceHost; drawing pixels is the host's business.
"""

from functools import partial
from typing import Callable, Optional

from decksync.callbacks import fire_all
from decksync.config import EngineConfig
from decksync.controls import ButtonContext, ButtonKind, VisualState
from decksync.logging_config import get_logger
from decksync.profiles import Articulation, TrackProfile
from decksync.registry import ContextRegistry
from decksync.surface import SurfaceHost
from decksync.timers import TimerService
from decksync.utils import DEFAULT_TRACK_COLOR

logger = get_logger(__name__)

NOTE_OFF_TIMER = "note-off"

# (note, on) -> True if the transport accepted the message
SendNote = Callable[[int, bool], bool]


class DeviceBoard:
    """Articulation page state of one device."""

    def __init__(self, profile: TrackProfile, color: str):
        self.articulations: list[Articulation] = list(profile.articulations)
        self.title: str = profile.title
        self.profile_key: Optional[str] = profile.profile_key
        self.color: str = color
        self.selected_slot: Optional[int] = None

    def articulation_at(self, slot: int) -> Optional[Articulation]:
        if 0 <= slot < len(self.articulations):
            articulation = self.articulations[slot]
            if not articulation.is_empty():
                return articulation
        return None


class ArticulationBoard:
    """
    Articulation pages of all connected devices.

    The current profile and track colour are shared by every device; only
    what is on screen differs.
    """

    def __init__(
        self,
        registry: ContextRegistry,
        timers: TimerService,
        surface: SurfaceHost,
        config: EngineConfig,
        send_note: SendNote,
    ):
        self._registry = registry
        self._timers = timers
        self._surface = surface
        self._timing = config.timing
        self._send_note = send_note

        self._profile = TrackProfile()
        self._color = DEFAULT_TRACK_COLOR
        self._boards: dict[str, DeviceBoard] = {}

    @property
    def profile(self) -> TrackProfile:
        return self._profile

    @property
    def color(self) -> str:
        return self._color

    def ensure_device(self, device_id: str) -> DeviceBoard:
        board = self._boards.get(device_id)
        if board is None:
            board = DeviceBoard(self._profile, self._color)
            self._boards[device_id] = board
            logger.debug(f"Articulation board created for {device_id}")
        return board

    def forget_device(self, device_id: str) -> None:
        self._boards.pop(device_id, None)

    def board(self, device_id: str) -> Optional[DeviceBoard]:
        return self._boards.get(device_id)

    def apply_profile(self, profile: TrackProfile) -> None:
        """Show a new profile on every device, clearing the selection."""
        self._profile = profile
        for device_id in list(self._boards):
            self._boards[device_id] = DeviceBoard(profile, self._color)
            self.render_device(device_id)

    def set_color(self, color: str) -> None:
        """Adopt a new track colour and re-render every device."""
        self._color = color
        for device_id, board in self._boards.items():
            board.color = color
            self.render_device(device_id)

    def visual_state(self, context: ButtonContext) -> VisualState:
        """Renderer input for one articulation or title key."""
        board = self.ensure_device(context.device_id)

        if context.slot is None:
            return VisualState(label=board.title, color=board.color)

        articulation = board.articulation_at(context.slot)
        if articulation is None:
            return VisualState()

        return VisualState(
            label=articulation.name,
            color=board.color,
            selected=board.selected_slot == context.slot,
            note_or_level=articulation.note,
        )

    def render_context(self, context: ButtonContext) -> None:
        fire_all([partial(self._surface.render_key, context.context_id, self.visual_state(context))])

    def render_device(self, device_id: str) -> int:
        """
        Render every articulation and title key of a device.

        Returns:
            Number of keys rendered
        """
        contexts = self._registry.contexts_for_device(device_id, ButtonKind.ARTICULATION)
        jobs = [partial(self._surface.render_key, ctx.context_id, self.visual_state(ctx)) for ctx in contexts]
        fire_all(jobs)
        return len(jobs)

    def on_page_visibility(self, device_id: str, visible: bool) -> None:
        """Visibility subscriber: draw the full profile when the page comes into view."""
        if visible:
            self.render_device(device_id)

    def on_press(self, context: ButtonContext) -> bool:
        """
        Select the articulation under a pressed key.

        Returns:
            True if a keyswitch note was sent
        """
        if context.slot is None:
            return False

        board = self.ensure_device(context.device_id)
        articulation = board.articulation_at(context.slot)
        if articulation is None or articulation.note is None:
            logger.debug(f"No keyswitch on {context.context_id} (slot {context.slot})")
            return False

        if not self._pulse(articulation.note):
            return False

        previous = board.selected_slot
        board.selected_slot = context.slot
        logger.info(f"Articulation '{articulation.name}' selected (note {articulation.note})")

        changed = [context]
        if previous is not None and previous != context.slot:
            changed.extend(
                ctx
                for ctx in self._registry.contexts_for_device(context.device_id, ButtonKind.ARTICULATION)
                if ctx.slot == previous
            )
        fire_all([partial(self._surface.render_key, ctx.context_id, self.visual_state(ctx)) for ctx in changed])
        return True

    def _pulse(self, note: int) -> bool:
        try:
            sent = self._send_note(note, True)
        except Exception as e:
            logger.exception(f"Error sending keyswitch note {note}: {e}")
            return False

        if not sent:
            logger.warning(f"Transport unavailable, dropped keyswitch note {note}")
            return False

        self._timers.schedule((NOTE_OFF_TIMER, note), self._timing.note_length, partial(self._send_note, note, False))
        return True

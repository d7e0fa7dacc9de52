"""
Control-surface host interface.

The engine never talks to the deck software directly. An adapter for the
host application (e.g. the Stream Deck websocket) implements SurfaceHost and
feeds the host's lifecycle messages into SyncEngine.handle() as events.
"""

from abc import ABC, abstractmethod

from decksync.controls import VisualState


class SurfaceHost(ABC):
    """
    Outbound side of the control-surface host.

    Both methods are fire-and-forget: the engine does not wait for delivery
    and only logs failures.
    """

    @abstractmethod
    def set_control_visual_state(self, context_id: str, active: bool) -> None:
        """
        Show a command button as on or off.

        Idempotent; the engine may repeat identical calls to repair a lost update.
        """
        pass

    @abstractmethod
    def render_key(self, context_id: str, visual_state: VisualState) -> None:
        """Draw an articulation or title key."""
        pass

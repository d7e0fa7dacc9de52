"""
Per-device visibility counters for the command and articulation pages.

A page counts as visible on a device while at least one of its buttons is on
screen. Only the 0->1 and 1->0 transitions are reported; intermediate
appearances and disappearances are bookkeeping.
"""

from typing import Optional

from pydantic import BaseModel, Field

from decksync.callbacks import CallbackManager
from decksync.controls import ButtonKind
from decksync.logging_config import get_logger

logger = get_logger(__name__)


class VisibilityCounter(BaseModel):
    """Visible button count per page for one device."""

    command_count: int = Field(default=0, ge=0)
    articulation_count: int = Field(default=0, ge=0)

    def get(self, kind: ButtonKind) -> int:
        return self.command_count if kind == ButtonKind.COMMAND else self.articulation_count

    def set(self, kind: ButtonKind, value: int) -> None:
        if kind == ButtonKind.COMMAND:
            self.command_count = value
        else:
            self.articulation_count = value


class VisibilityTracker:
    """
    Counts visible buttons per device and page, reporting page edges.

    Edges are returned to the caller and also dispatched to subscribers
    registered on the CallbackManager.
    """

    def __init__(self, callbacks: CallbackManager):
        """
        Initialize tracker.

        Args:
            callbacks: Callback manager that receives edge notifications
        """
        self._callbacks = callbacks
        self._counters: dict[str, VisibilityCounter] = {}

    def appear(self, device_id: str, kind: ButtonKind) -> Optional[bool]:
        """
        Record one more visible button.

        Returns:
            True on a 0->1 edge, None otherwise
        """
        counter = self._counters.setdefault(device_id, VisibilityCounter())
        count = counter.get(kind) + 1
        counter.set(kind, count)

        if count == 1:
            logger.debug(f"{kind.value} page became visible on {device_id}")
            self._callbacks.on_visibility_edge(kind, device_id, True)
            return True
        return None

    def disappear(self, device_id: str, kind: ButtonKind) -> Optional[bool]:
        """
        Record one fewer visible button (floored at zero).

        Returns:
            False on a 1->0 edge, None otherwise
        """
        counter = self._counters.get(device_id)
        if counter is None or counter.get(kind) == 0:
            logger.warning(f"Ignoring {kind.value} disappearance on {device_id}: nothing visible")
            return None

        count = counter.get(kind) - 1
        counter.set(kind, count)

        if count == 0:
            logger.debug(f"{kind.value} page became hidden on {device_id}")
            self._callbacks.on_visibility_edge(kind, device_id, False)
            return False
        return None

    def count(self, device_id: str, kind: ButtonKind) -> int:
        counter = self._counters.get(device_id)
        return counter.get(kind) if counter else 0

    def is_visible(self, device_id: str, kind: ButtonKind) -> bool:
        return self.count(device_id, kind) > 0

    def visible_devices(self, kind: ButtonKind) -> list[str]:
        """Devices on which the page of this kind is currently visible."""
        return [device_id for device_id, counter in self._counters.items() if counter.get(kind) > 0]

    def forget_device(self, device_id: str) -> None:
        """Drop a device's counters without reporting edges (device is gone)."""
        self._counters.pop(device_id, None)

"""
Error-isolated callback dispatch.

Subscribers (visibility edges, track changes, UI commits) and UI side effects
are executed with exception isolation so one failing collaborator cannot
take down the bridge or starve the remaining work in a batch.
"""

from collections import defaultdict
from typing import Callable, Iterable

from decksync.controls import ButtonKind
from decksync.logging_config import get_logger

logger = get_logger(__name__)

# Callback type signatures
VisibilityCallback = Callable[[str, bool], None]  # (device_id, visible)
TrackCallback = Callable[[str], None]  # (track_name)
CommitCallback = Callable[[str, bool], None]  # (context_id, active)
CommitStates = Callable[[Iterable[tuple[str, bool]]], None]  # batch of (context_id, active)
Job = Callable[[], object]


def fire_all(jobs: Iterable[Job]) -> int:
    """
    Run every job, isolating failures ("settle all, then fire all").

    Each job is attempted regardless of what happened to the previous ones.
    Failures are logged, never retried.

    Args:
        jobs: Zero-argument callables

    Returns:
        Number of jobs that raised
    """
    failures = 0
    for job in jobs:
        if not safe_call(job):
            failures += 1
    return failures


def _callback_name(callback: Callable) -> str:
    return getattr(callback, "__name__", repr(callback))


def safe_call(callback: Callable, *args) -> bool:
    """
    Execute callback with exception isolation.

    Returns:
        True if the callback completed without raising
    """
    try:
        callback(*args)
        return True
    except Exception as e:
        logger.exception(f"Error in callback '{_callback_name(callback)}': {e}")
        return False


class CallbackManager:
    """
    Manages subscriber registration and dispatch with error isolation.

    Supports three kinds of subscribers:
    1. Visibility callbacks - per button kind, fired on 0<->1 page edges
    2. Track callbacks - fired once per effective track change
    3. Commit callbacks - fired after every UI state commit
    """

    def __init__(self):
        self._visibility_callbacks: defaultdict[ButtonKind, list[VisibilityCallback]] = defaultdict(list)
        self._track_callbacks: list[TrackCallback] = []
        self._commit_callbacks: list[CommitCallback] = []

    # Registration methods

    def register_visibility(self, kind: ButtonKind, callback: VisibilityCallback) -> None:
        """
        Register callback for visibility edges of one button kind.

        Args:
            kind: Button kind whose page edges are of interest
            callback: Function(device_id: str, visible: bool) -> None
        """
        self._visibility_callbacks[kind].append(callback)
        logger.debug(f"Registered visibility callback for '{kind.value}': {_callback_name(callback)}")

    def register_track(self, callback: TrackCallback) -> None:
        """Register callback for track changes: Function(track_name: str) -> None."""
        self._track_callbacks.append(callback)
        logger.debug(f"Registered track callback: {_callback_name(callback)}")

    def register_commit(self, callback: CommitCallback) -> None:
        """Register callback for UI commits: Function(context_id: str, active: bool) -> None."""
        self._commit_callbacks.append(callback)
        logger.debug(f"Registered commit callback: {_callback_name(callback)}")

    def unregister_commit(self, callback: CommitCallback) -> bool:
        """
        Unregister commit callback.

        Returns:
            True if callback was registered and removed
        """
        if callback in self._commit_callbacks:
            self._commit_callbacks.remove(callback)
            logger.debug(f"Unregistered commit callback: {_callback_name(callback)}")
            return True
        return False

    # Dispatch methods

    def on_visibility_edge(self, kind: ButtonKind, device_id: str, visible: bool) -> None:
        # Copy before dispatch so callbacks may register further callbacks
        for callback in list(self._visibility_callbacks[kind]):
            safe_call(callback, device_id, visible)

    def on_track_change(self, track_name: str) -> None:
        for callback in list(self._track_callbacks):
            safe_call(callback, track_name)

    def on_commit(self, context_id: str, active: bool) -> None:
        for callback in list(self._commit_callbacks):
            safe_call(callback, context_id, active)

    # Utility methods

    def clear_all(self) -> None:
        """Clear all registered callbacks."""
        self._visibility_callbacks.clear()
        self._track_callbacks.clear()
        self._commit_callbacks.clear()
        logger.debug("Cleared all callbacks")

    def get_callback_counts(self) -> dict[str, int]:
        """
        Get count of registered callbacks by type.

        Returns:
            Dictionary with callback counts
        """
        return {
            "visibility": sum(len(cbs) for cbs in self._visibility_callbacks.values()),
            "track": len(self._track_callbacks),
            "commit": len(self._commit_callbacks),
        }

"""
Resync coordination between the state cache and the visible buttons.

A button that appears has no live feedback yet; only the cache can tell it
what to show. This module decides, per button, whether to restore the cached
state, leave the button alone (stale cache) or neutralize it to "off" (no
cache), and schedules forced resyncs when a command page becomes visible or
the track changes.
"""

from enum import Enum
from functools import partial
from typing import Optional

from decksync.callbacks import CommitStates
from decksync.config import EngineConfig
from decksync.controls import ButtonContext, ButtonKind
from decksync.logging_config import get_logger
from decksync.registry import ContextRegistry
from decksync.state import ACK_TIMER, RESYNC_TIMER, SessionState
from decksync.timers import TimerService
from decksync.visibility import VisibilityTracker

logger = get_logger(__name__)


class RestoreOutcome(str, Enum):
    """Result of restoring one context from the cache."""

    RESTORED = "restored"
    NEUTRALIZED = "neutralized"
    SKIPPED_STALE = "skipped_stale"
    UNKNOWN_CONTEXT = "unknown_context"


class ResyncCoordinator:
    """
    Drives cached control state into the UI.

    Restore rules for one context:
    - no cache entry: neutralize (active=False, commit off)
    - entry older than stale_after and not forced: skip
    - otherwise: apply the cached state and commit it
    """

    def __init__(
        self,
        registry: ContextRegistry,
        session: SessionState,
        timers: TimerService,
        visibility: VisibilityTracker,
        config: EngineConfig,
        commit: CommitStates,
    ):
        self._registry = registry
        self._session = session
        self._timers = timers
        self._visibility = visibility
        self._timing = config.timing
        self._commit = commit

    def restore_context(self, context_id: str, force_age: bool = False) -> RestoreOutcome:
        """
        Restore one context from the cache and commit the result.

        Args:
            context_id: Context to restore
            force_age: Ignore the staleness threshold

        Returns:
            What happened to the context
        """
        context = self._registry.get(context_id)
        if context is None or context.control is None:
            logger.debug(f"Cannot restore {context_id}: not a bound command context")
            return RestoreOutcome.UNKNOWN_CONTEXT

        outcome, update = self._restore(context, force_age)
        if update is not None:
            self._commit([update])
        return outcome

    def resync_device(self, device_id: str, force_age: bool = True) -> dict[RestoreOutcome, int]:
        """
        Restore every command context on a device, committing in one batch.

        Returns:
            Count of contexts per outcome
        """
        counts: dict[RestoreOutcome, int] = {}
        updates: list[tuple[str, bool]] = []
        for context in self._registry.contexts_for_device(device_id, ButtonKind.COMMAND):
            outcome, update = self._restore(context, force_age)
            counts[outcome] = counts.get(outcome, 0) + 1
            if update is not None:
                updates.append(update)

        if updates:
            self._commit(updates)
        summary = ", ".join(f"{outcome.value}={count}" for outcome, count in counts.items())
        logger.debug(f"Resync on {device_id} (forced={force_age}): {summary or 'no command contexts'}")
        return counts

    def schedule_device_resync(self, device_id: str) -> None:
        """Arm a forced resync of a device after the resync delay (replacing a pending one)."""
        self._timers.schedule(
            (RESYNC_TIMER, device_id),
            self._timing.resync_delay,
            partial(self.resync_device, device_id, True),
        )
        logger.debug(f"Scheduled resync on {device_id} in {self._timing.resync_delay:.3f}s")

    def cancel_device_resync(self, device_id: str) -> bool:
        return self._timers.cancel((RESYNC_TIMER, device_id))

    def on_command_page_visibility(self, device_id: str, visible: bool) -> None:
        """Visibility subscriber: seed a newly visible command page from the cache."""
        if visible:
            self.schedule_device_resync(device_id)
        else:
            self.cancel_device_resync(device_id)

    def on_track_changed(self, track_name: str) -> bool:
        """
        Move to a new track.

        Clears ack, cooldown and debounce state, switches the cache scope and
        schedules a forced resync on every device showing a command page.

        Returns:
            True if the track actually changed
        """
        if not self._session.cache.set_track(track_name):
            return False

        self._session.clear_track_scoped()
        canceled = self._timers.cancel_where(lambda key: isinstance(key, tuple) and key[0] == ACK_TIMER)
        if canceled:
            logger.debug(f"Canceled {canceled} ack timers on track change")

        visible = self._visibility.visible_devices(ButtonKind.COMMAND)
        for device_id in visible:
            self.schedule_device_resync(device_id)

        logger.info(f"Track changed to '{self._session.cache.track_name}' ({len(visible)} command pages to resync)")
        return True

    def _restore(self, context: ButtonContext, force_age: bool) -> tuple[RestoreOutcome, Optional[tuple[str, bool]]]:
        entry = self._session.cache.lookup(context.control)

        if entry is None:
            context.active = False
            return RestoreOutcome.NEUTRALIZED, (context.context_id, False)

        now = self._timers.now()
        if not force_age and self._session.cache.is_stale(entry, now, self._timing.stale_after):
            logger.debug(f"Skipping stale cache for {context.context_id} ({entry.age(now):.2f}s old)")
            return RestoreOutcome.SKIPPED_STALE, None

        context.active = entry.state
        return RestoreOutcome.RESTORED, (context.context_id, entry.state)

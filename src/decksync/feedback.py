"""
Inbound feedback settling.

Host feedback arrives in bursts (automation ramps, self-echo of our own
commands, mapping refreshes after a track change). Each message updates the
cache and resolves a pending ack right away, but the UI is only touched once
the control has been quiet for the settle window. The last value received
before that quiet period is what the user sees.
"""

from functools import partial

from decksync.callbacks import CommitStates
from decksync.config import EngineConfig
from decksync.controls import (
    MIDI_VALUE_MAX,
    LogicalControl,
    PendingFeedback,
    clamp_midi_value,
    value_to_active,
)
from decksync.logging_config import get_logger
from decksync.registry import ContextRegistry
from decksync.state import ACK_TIMER, SETTLE_TIMER, SessionState
from decksync.timers import TimerService

logger = get_logger(__name__)


class FeedbackSettler:
    """
    Buffers feedback per control and commits one UI update per burst.

    Conflict rule with optimistic toggles: whatever a button shows locally,
    the settled feedback value overwrites it when the window closes.
    """

    def __init__(
        self,
        registry: ContextRegistry,
        session: SessionState,
        timers: TimerService,
        config: EngineConfig,
        commit: CommitStates,
    ):
        self._registry = registry
        self._session = session
        self._timers = timers
        self._timing = config.timing
        self._force_resync_commit = config.force_resync_commit
        self._commit = commit

    def on_feedback(self, channel: int, controller: int, raw_value: int) -> bool:
        """
        Ingest one feedback message.

        Feedback is cached even when no button is currently bound to the
        control, so a page that appears later can be seeded from it.

        Args:
            channel: MIDI channel (0-15)
            controller: CC number (0-127)
            raw_value: CC value, clamped into 0-127

        Returns:
            True if the message was accepted
        """
        if not 0 <= channel <= 15 or not 0 <= controller <= MIDI_VALUE_MAX:
            logger.warning(f"Ignoring malformed feedback: channel={channel} controller={controller}")
            return False

        value = clamp_midi_value(raw_value)
        if value != raw_value:
            logger.warning(f"Clamped out-of-range feedback value {raw_value} -> {value} (ch{channel + 1}/cc{controller})")

        control = LogicalControl(channel=channel, controller=controller)
        active = value_to_active(value)
        now = self._timers.now()

        # Any host activity on the control resolves the pending ack, echo or not
        if control in self._session.awaiting_ack:
            self._session.awaiting_ack.discard(control)
            self._timers.cancel((ACK_TIMER, control))
            logger.debug(f"Ack resolved for {control}")

        self._session.cache.record(control, active, now)

        self._session.pending[control] = PendingFeedback(active=active, timestamp=now)
        self._timers.schedule((SETTLE_TIMER, control), self._timing.settle_window, partial(self._settle, control))
        return True

    def has_pending(self, control: LogicalControl) -> bool:
        return control in self._session.pending

    def _settle(self, control: LogicalControl) -> None:
        pending = self._session.pending.pop(control, None)
        if pending is None:
            return

        updates: list[tuple[str, bool]] = []
        for context in self._registry.contexts_for_control(control):
            if context.active != pending.active:
                context.active = pending.active
                updates.append((context.context_id, pending.active))
            elif self._force_resync_commit:
                # Re-push in case an earlier UI update was lost
                updates.append((context.context_id, pending.active))

        if updates:
            logger.debug(f"Settled {control} -> {'on' if pending.active else 'off'} ({len(updates)} contexts)")
            self._commit(updates)

"""
Outbound command dispatch.

Turns a press on a command button into a CC message for the DAW, guarded by
three gates: a per-button tap debounce, a per-control cooldown shared by all
buttons bound to the control, and (for momentary buttons) an ack gate that
refuses to resend while the previous command is still unconfirmed.
"""

from functools import partial
from typing import Callable

from decksync.callbacks import CommitStates
from decksync.config import EngineConfig
from decksync.controls import ButtonContext, ButtonKind, ButtonMode, LogicalControl, SentCommand
from decksync.logging_config import get_logger
from decksync.registry import ContextRegistry
from decksync.state import ACK_TIMER, SessionState
from decksync.timers import TimerService

logger = get_logger(__name__)

VALUE_ON = 127
VALUE_OFF = 0

# (control, value) -> True if the transport accepted the message
SendCommand = Callable[[LogicalControl, int], bool]


class CommandDispatcher:
    """
    Applies debounce, cooldown and ack gating to press intents.

    Guarantees at most one in-flight, unconfirmed momentary send per logical
    control. Toggle sends are rate-limited but never ack-gated.
    """

    def __init__(
        self,
        registry: ContextRegistry,
        session: SessionState,
        timers: TimerService,
        config: EngineConfig,
        send: SendCommand,
        commit: CommitStates,
    ):
        """
        Initialize dispatcher.

        Args:
            registry: Context registry
            session: Session store (tap times, cooldowns, acks)
            timers: Timer service for ack timeouts
            config: Engine configuration
            send: Transport for outbound commands
            commit: UI commit sink
        """
        self._registry = registry
        self._session = session
        self._timers = timers
        self._timing = config.timing
        self._send = send
        self._commit = commit

    def on_press_intent(self, context_id: str) -> bool:
        """
        Handle a press on a visible button.

        Never raises; every refusal is logged at debug level.

        Args:
            context_id: Context that was pressed

        Returns:
            True if a command was sent
        """
        context = self._registry.get(context_id)
        if context is None:
            logger.debug(f"Press on unknown context {context_id}")
            return False
        if context.kind != ButtonKind.COMMAND or context.control is None:
            logger.debug(f"Press on non-command context {context_id}")
            return False

        now = self._timers.now()

        last_tap = self._session.last_tap.get(context_id)
        if last_tap is not None and now - last_tap < self._timing.tap_debounce:
            logger.debug(f"Tap debounce: ignoring press on {context_id} ({now - last_tap:.3f}s after previous)")
            return False
        self._session.last_tap[context_id] = now

        control = context.control
        next_allowed = self._session.next_allowed.get(control)
        if next_allowed is not None and now < next_allowed:
            logger.debug(f"Cooldown: {control} blocked for another {next_allowed - now:.3f}s")
            return False

        if context.mode == ButtonMode.MOMENTARY:
            return self._press_momentary(control, now)
        return self._press_toggle(context, control, now)

    def is_awaiting_ack(self, control: LogicalControl) -> bool:
        return control in self._session.awaiting_ack

    def _press_momentary(self, control: LogicalControl, now: float) -> bool:
        if control in self._session.awaiting_ack:
            logger.debug(f"Ack gate: {control} still awaiting host confirmation")
            return False

        if not self._transmit(control, VALUE_ON):
            return False

        self._session.last_sent[control] = SentCommand(timestamp=now, value=VALUE_ON)
        self._session.awaiting_ack.add(control)
        self._timers.schedule((ACK_TIMER, control), self._timing.ack_timeout, partial(self._on_ack_timeout, control))
        self._session.next_allowed[control] = now + self._timing.key_cooldown
        logger.debug(f"Sent momentary command {control}={VALUE_ON}")
        return True

    def _press_toggle(self, context: ButtonContext, control: LogicalControl, now: float) -> bool:
        # Optimistic: feedback reconciles this later through the settler
        new_active = not context.active
        value = VALUE_ON if new_active else VALUE_OFF

        if not self._transmit(control, value):
            return False

        context.active = new_active
        self._session.last_sent[control] = SentCommand(timestamp=now, value=value)
        self._session.next_allowed[control] = now + self._timing.key_cooldown
        self._commit([(context.context_id, new_active)])
        logger.debug(f"Sent toggle command {control}={value} from {context.context_id}")
        return True

    def _transmit(self, control: LogicalControl, value: int) -> bool:
        try:
            sent = self._send(control, value)
        except Exception as e:
            logger.exception(f"Error sending {control}={value}: {e}")
            return False

        if not sent:
            logger.warning(f"Transport unavailable, dropped command {control}={value}")
        return sent

    def _on_ack_timeout(self, control: LogicalControl) -> None:
        if control in self._session.awaiting_ack:
            self._session.awaiting_ack.discard(control)
            logger.info(f"No confirmation from host for {control}, releasing ack gate")

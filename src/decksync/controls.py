"""
Core control abstractions and state models for decksync.

A LogicalControl is one feedback loop between the surface and the DAW
(a channel/controller pair). ButtonContexts are the visible button instances
bound to it; several contexts, possibly on several devices, may share one
LogicalControl. Models use Pydantic for validation.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

# Feedback values at or above this threshold read as "on"
FEEDBACK_THRESHOLD = 64

MIDI_VALUE_MIN = 0
MIDI_VALUE_MAX = 127


class ButtonMode(str, Enum):
    """Press behaviour of a command button."""

    MOMENTARY = "momentary"  # One pulse per press, state comes from host feedback
    TOGGLE = "toggle"  # Flips local state optimistically on each press


class ButtonKind(str, Enum):
    """Which page a button instance belongs to."""

    COMMAND = "command"
    ARTICULATION = "articulation"


class LogicalControl(BaseModel):
    """
    Identity of one control-surface feedback loop.

    Frozen so it can key the cooldown, ack and cache maps.
    """

    channel: int = Field(ge=0, le=15)
    controller: int = Field(ge=0, le=127)

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"ch{self.channel + 1}/cc{self.controller}"


class ButtonContext(BaseModel):
    """
    One visible button instance.

    `active` is optimistic local UI state; confirmed feedback may overwrite it.
    Command contexts are bound to a LogicalControl. Articulation contexts carry
    a slot index instead, or None for the instrument title key.
    """

    context_id: str
    device_id: str
    kind: ButtonKind = ButtonKind.COMMAND
    control: Optional[LogicalControl] = None
    mode: ButtonMode = ButtonMode.MOMENTARY
    active: bool = False
    slot: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_binding(self):
        """Command buttons need a control to talk to. Articulation buttons must not have one."""
        if self.kind == ButtonKind.COMMAND and self.control is None:
            raise ValueError(f"Command context '{self.context_id}' must be bound to a control")
        if self.kind == ButtonKind.ARTICULATION and self.control is not None:
            raise ValueError(f"Articulation context '{self.context_id}' cannot be bound to a control")
        return self


class SentCommand(BaseModel):
    """Last outbound value for a control."""

    timestamp: float
    value: int = Field(ge=MIDI_VALUE_MIN, le=MIDI_VALUE_MAX)

    model_config = {"frozen": True}


class PendingFeedback(BaseModel):
    """Most recent feedback for a control that has not been committed to the UI yet."""

    active: bool
    timestamp: float

    model_config = {"frozen": True}


class CacheEntry(BaseModel):
    """Last known boolean state of a control."""

    state: bool
    timestamp: float

    model_config = {"frozen": True}

    def age(self, now: float) -> float:
        return now - self.timestamp


class VisualState(BaseModel):
    """What the artwork renderer needs to draw one key."""

    label: str = ""
    color: Optional[str] = None
    selected: bool = False
    note_or_level: Optional[int] = None

    model_config = {"frozen": True}


def clamp_midi_value(value: int) -> int:
    """Clamp a raw value into the 0-127 MIDI range."""
    return max(MIDI_VALUE_MIN, min(MIDI_VALUE_MAX, value))


def value_to_active(value: int) -> bool:
    """Binary reading of a 0-127 feedback value."""
    return value >= FEEDBACK_THRESHOLD

"""
Inbound events consumed by the engine.

Everything that can happen to the bridge is one of a closed set of tagged
variants, dispatched in one place (SyncEngine.handle). Host adapters build
these directly or validate raw payloads with parse_event().
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from decksync.controls import ButtonKind, ButtonMode, LogicalControl


class DeviceConnected(BaseModel):
    """A deck was plugged in or the host reported it at startup."""

    kind: Literal["device_connected"] = "device_connected"
    device_id: str


class DeviceDisconnected(BaseModel):
    """A deck went away together with all of its visible buttons."""

    kind: Literal["device_disconnected"] = "device_disconnected"
    device_id: str


class ContextAppeared(BaseModel):
    """A button instance became visible."""

    kind: Literal["context_appeared"] = "context_appeared"
    device_id: str
    context_id: str
    button_kind: ButtonKind = ButtonKind.COMMAND
    control: Optional[LogicalControl] = None
    mode: ButtonMode = ButtonMode.MOMENTARY
    slot: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_binding(self):
        if self.button_kind == ButtonKind.COMMAND and self.control is None:
            raise ValueError("command buttons must be bound to a control")
        if self.button_kind == ButtonKind.ARTICULATION and self.control is not None:
            raise ValueError("articulation buttons cannot be bound to a control")
        return self


class ContextDisappeared(BaseModel):
    """A button instance left the screen."""

    kind: Literal["context_disappeared"] = "context_disappeared"
    context_id: str


class KeyPressed(BaseModel):
    """The user pressed a visible button."""

    kind: Literal["key_pressed"] = "key_pressed"
    context_id: str


class Feedback(BaseModel):
    """
    Control-change feedback from the DAW.

    Values are not range-checked here; the settler clamps or rejects them.
    """

    kind: Literal["feedback"] = "feedback"
    channel: int
    controller: int
    value: int


class TrackChanged(BaseModel):
    """The DAW's selected track changed."""

    kind: Literal["track_changed"] = "track_changed"
    track_name: str


class TrackColorComponent(BaseModel):
    """One of the three colour components of the selected track (0-127)."""

    kind: Literal["track_color_component"] = "track_color_component"
    component: Literal["r", "g", "b"]
    value: int


# Discriminated union for parsing any inbound event
Event = Annotated[
    Union[
        DeviceConnected,
        DeviceDisconnected,
        ContextAppeared,
        ContextDisappeared,
        KeyPressed,
        Feedback,
        TrackChanged,
        TrackColorComponent,
    ],
    Field(discriminator="kind"),
]

_event_adapter: TypeAdapter = TypeAdapter(Event)


def parse_event(data: dict[str, Any]) -> Event:
    """
    Validate a raw payload into an event variant.

    Raises:
        pydantic.ValidationError: If the payload matches no variant
    """
    return _event_adapter.validate_python(data)

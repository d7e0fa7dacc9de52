"""
MIDI codec between the bridge and the DAW's remote script.

Wire format (channels zero-based):
- Track name: SysEx F0 <7-bit ASCII bytes> F7
- Track colour: CC 20/21/22 = R/G/B (0-127) on the colour channel
- Command slots: CC on the command channel, 0/127 both ways
- Articulations: note on/off on the articulation channel

Any other CC is treated as feedback for the LogicalControl it addresses.
"""

from typing import Optional, Union

import mido

from decksync.config import MidiConfig
from decksync.controls import LogicalControl
from decksync.events import Feedback, TrackChanged, TrackColorComponent
from decksync.logging_config import get_logger

logger = get_logger(__name__)

_COLOR_COMPONENTS = ("r", "g", "b")


class HostProtocol:
    """Translates between mido messages and engine events / commands."""

    def __init__(self, config: Optional[MidiConfig] = None):
        self._config = config or MidiConfig()
        self._color_by_cc = dict(zip(self._config.color_ccs, _COLOR_COMPONENTS))

    @property
    def config(self) -> MidiConfig:
        return self._config

    # Inbound

    def decode(self, msg: mido.Message) -> Optional[Union[TrackChanged, TrackColorComponent, Feedback]]:
        """
        Translate an inbound MIDI message into an engine event.

        Args:
            msg: Message received from the DAW

        Returns:
            TrackChanged, TrackColorComponent or Feedback; None for messages
            the bridge does not care about
        """
        if msg.type == "sysex":
            return self.decode_track_name(msg.data)

        if msg.type != "control_change":
            logger.debug(f"Ignoring {msg.type} from host")
            return None

        if msg.channel == self._config.color_channel and msg.control in self._color_by_cc:
            return TrackColorComponent(component=self._color_by_cc[msg.control], value=msg.value)

        return Feedback(channel=msg.channel, controller=msg.control, value=msg.value)

    def decode_track_name(self, data) -> Optional[TrackChanged]:
        """
        Decode SysEx payload bytes (without F0/F7) into a track name.

        Returns:
            None for blank names
        """
        name = "".join(chr(byte & 0x7F) for byte in data).strip()
        if not name:
            logger.debug("Ignoring blank track name")
            return None
        return TrackChanged(track_name=name)

    # Outbound

    def encode_command(self, control: LogicalControl, value: int) -> mido.Message:
        return mido.Message("control_change", channel=control.channel, control=control.controller, value=value)

    def encode_note(self, note: int, on: bool) -> mido.Message:
        if on:
            return mido.Message(
                "note_on",
                channel=self._config.articulation_channel,
                note=note,
                velocity=self._config.articulation_velocity,
            )
        return mido.Message("note_off", channel=self._config.articulation_channel, note=note, velocity=0)

    def encode_track_name(self, track_name: str) -> mido.Message:
        """SysEx carrying a track name, as the remote script sends it."""
        return mido.Message("sysex", data=[ord(ch) & 0x7F for ch in track_name])

    # Slot layout

    def command_slots(self) -> list[LogicalControl]:
        """Every command slot the remote script exposes, in layout order."""
        return [
            LogicalControl(channel=self._config.command_channel, controller=cc)
            for cc in range(self._config.command_cc_first, self._config.command_cc_last + 1)
        ]

    def command_slot(self, index: int) -> LogicalControl:
        """
        Command slot by zero-based position.

        Raises:
            IndexError: If index is outside the configured CC range
        """
        slots = self._config.command_cc_last - self._config.command_cc_first + 1
        if not 0 <= index < slots:
            raise IndexError(f"Command slot {index} out of range (0-{slots - 1})")
        return LogicalControl(channel=self._config.command_channel, controller=self._config.command_cc_first + index)

"""Shared utilities for decksync."""

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Neutral slate used until the DAW reports a track colour
DEFAULT_TRACK_COLOR = "#4B5563"


class RGBColor(BaseModel):
    """RGB color with full range (0-255), parsed from hex or built from MIDI values."""

    r: int = Field(ge=0, le=255, description="Red channel (0-255)")
    g: int = Field(ge=0, le=255, description="Green channel (0-255)")
    b: int = Field(ge=0, le=255, description="Blue channel (0-255)")

    model_config = {"frozen": True}

    @classmethod
    def from_hex(cls, color: str) -> "RGBColor":
        """Parse "#RRGGBB" (leading # optional).

        Args:
            color: Hex color string

        Returns:
            RGBColor instance; the default track colour if the string is not valid hex
        """
        text = color.strip().lstrip("#")
        if len(text) == 6:
            try:
                return cls(r=int(text[0:2], 16), g=int(text[2:4], 16), b=int(text[4:6], 16))
            except ValueError:
                pass

        logger.warning(f"Could not parse color '{color}', using {DEFAULT_TRACK_COLOR}")
        return cls.from_hex(DEFAULT_TRACK_COLOR)

    @classmethod
    def from_midi_values(cls, r: int, g: int, b: int) -> "RGBColor":
        """Create from MIDI range (0-127) values, scaling to full range.

        Values outside 0-127 are clamped before scaling.
        """

        def scale(v: int) -> int:
            return round(max(0, min(127, v)) / 127 * 255)

        return cls(r=scale(r), g=scale(g), b=scale(b))

    def to_hex(self) -> str:
        """Lowercase "#rrggbb" representation."""
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

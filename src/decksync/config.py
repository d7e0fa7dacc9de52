"""
Pydantic configuration models for the bridge.

Configuration is loaded once at startup and frozen. The cache mode in
particular is fixed for the lifetime of a session.
"""

from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from decksync.logging_config import get_logger

logger = get_logger(__name__)


class ConfigurationError(Exception):
    """Raised when startup configuration is missing or invalid."""

    pass


class CacheMode(str, Enum):
    """How cached control state is scoped across track changes."""

    PER_TRACK = "per_track"  # Retain state per track, no global fallback
    CLEAR_ON_TRACK_CHANGE = "clear_on_track_change"  # Global fallback, wiped on every track change


class TimingConfig(BaseModel):
    """
    Timing constants, all in seconds.

    Attributes:
        tap_debounce: Minimum gap between two presses of the same button instance
        key_cooldown: Minimum gap between two sends for the same logical control
        ack_timeout: How long a momentary send waits for host feedback before releasing the gate
        settle_window: Quiet period after the last feedback edge before the UI is updated
        resync_delay: Delay between a page becoming visible and its forced resync
        stale_after: Maximum cache age that a non-forced restore will apply
        track_debounce: Quiet period before a new track's profile is applied
        color_settle: Window for collecting the three track colour components
        note_length: Gap between note-on and note-off of an articulation pulse
    """

    tap_debounce: float = Field(default=0.22, ge=0.0)
    key_cooldown: float = Field(default=0.22, ge=0.0)
    ack_timeout: float = Field(default=0.9, ge=0.0)
    settle_window: float = Field(default=0.16, ge=0.0)
    resync_delay: float = Field(default=0.26, ge=0.0)
    stale_after: float = Field(default=3.5, ge=0.0)
    track_debounce: float = Field(default=0.12, ge=0.0)
    color_settle: float = Field(default=0.025, ge=0.0)
    note_length: float = Field(default=0.11, ge=0.0)

    model_config = {"frozen": True}


class MidiConfig(BaseModel):
    """
    MIDI wiring between the bridge and the DAW's remote script.

    Channels are zero-based (13 is "channel 14" in the DAW).
    """

    output_port: str = "NodeToCubase"  # Port name pattern, bridge -> DAW
    input_port: str = "CubaseToNode"  # Port name pattern, DAW -> bridge

    command_channel: int = Field(default=13, ge=0, le=15)
    command_cc_first: int = Field(default=10, ge=0, le=127)
    command_cc_last: int = Field(default=41, ge=0, le=127)

    color_channel: int = Field(default=14, ge=0, le=15)
    color_ccs: tuple[int, int, int] = (20, 21, 22)  # R, G, B

    articulation_channel: int = Field(default=0, ge=0, le=15)
    articulation_velocity: int = Field(default=127, ge=1, le=127)

    model_config = {"frozen": True}

    @field_validator("color_ccs")
    @classmethod
    def validate_color_ccs(cls, v):
        if len(set(v)) != 3 or any(not 0 <= cc <= 127 for cc in v):
            raise ValueError(f"color_ccs must be three distinct controller numbers 0-127, got {v}")
        return v

    @model_validator(mode="after")
    def validate_command_range(self):
        if self.command_cc_first > self.command_cc_last:
            raise ValueError(
                f"command_cc_first ({self.command_cc_first}) must not exceed "
                f"command_cc_last ({self.command_cc_last})",
            )
        return self


class EngineConfig(BaseModel):
    """
    Root configuration for a bridge session.

    Attributes:
        timing: Debounce, cooldown, ack, settle and resync timings
        midi: Port names and channel layout
        cache_mode: Cache scoping policy across track changes
        force_resync_commit: Push a UI commit after settle even if the state did not change
        profiles_path: Optional JSON file with articulation profiles
    """

    timing: TimingConfig = Field(default_factory=TimingConfig)
    midi: MidiConfig = Field(default_factory=MidiConfig)
    cache_mode: CacheMode = CacheMode.PER_TRACK
    force_resync_commit: bool = True
    profiles_path: Optional[Path] = None

    model_config = {"frozen": True}


def load_config(path: Union[str, Path]) -> EngineConfig:
    """
    Load an EngineConfig from a JSON file.

    Args:
        path: Path to the JSON configuration file

    Returns:
        Validated, frozen configuration

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}") from e

    try:
        config = EngineConfig.model_validate_json(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    # Relative profile paths are resolved against the config file location
    if config.profiles_path is not None and not config.profiles_path.is_absolute():
        config = config.model_copy(update={"profiles_path": config_path.parent / config.profiles_path})

    logger.info(f"Loaded configuration from {config_path} (cache mode: {config.cache_mode.value})")
    return config

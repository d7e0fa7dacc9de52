"""
Decksync: Control-Surface to DAW Synchronization Bridge

Keeps the buttons of a control surface (e.g. Stream Deck) consistent with the
state of a DAW that only talks MIDI. Presses become debounced, rate-limited,
ack-gated control-change commands; host feedback is settled before it reaches
the UI; cached state is restored per track when pages become visible or the
selected track changes.
"""

__version__ = "0.1.0"

# Main API
from .engine import SyncEngine

# Configuration models
from .config import (
    CacheMode,
    ConfigurationError,
    EngineConfig,
    MidiConfig,
    TimingConfig,
    load_config,
)

# Control types and models
from .controls import (
    ButtonContext,
    ButtonKind,
    ButtonMode,
    CacheEntry,
    LogicalControl,
    VisualState,
)

# Events
from .events import (
    ContextAppeared,
    ContextDisappeared,
    DeviceConnected,
    DeviceDisconnected,
    Event,
    Feedback,
    KeyPressed,
    TrackChanged,
    TrackColorComponent,
    parse_event,
)

# Logging configuration
from .logging_config import (
    get_logger,
    set_module_level,
    setup_logging,
)

# Host integration
from .midi_io import MIDIInterface
from .profiles import Articulation, ProfileBook, ProfileResolver, TrackProfile
from .protocol import HostProtocol
from .resync import RestoreOutcome
from .surface import SurfaceHost
from .timers import TimerService

__all__ = [
    # Version
    "__version__",
    # Main API
    "SyncEngine",
    # Configuration models
    "CacheMode",
    "EngineConfig",
    "MidiConfig",
    "TimingConfig",
    "load_config",
    # Control types and models
    "ButtonContext",
    "ButtonKind",
    "ButtonMode",
    "CacheEntry",
    "LogicalControl",
    "VisualState",
    # Events
    "Event",
    "DeviceConnected",
    "DeviceDisconnected",
    "ContextAppeared",
    "ContextDisappeared",
    "KeyPressed",
    "Feedback",
    "TrackChanged",
    "TrackColorComponent",
    "parse_event",
    # Logging configuration
    "setup_logging",
    "get_logger",
    "set_module_level",
    # Exceptions
    "ConfigurationError",
    # Host integration
    "SurfaceHost",
    "ProfileResolver",
    "ProfileBook",
    "TrackProfile",
    "Articulation",
    "HostProtocol",
    "MIDIInterface",
    "RestoreOutcome",
    "TimerService",
]

"""
Session state for the synchronization engine.

TrackStateCache keeps the last known on/off state per logical control,
scoped by track. SessionState is the single owned store of everything else
the dispatcher and settler track between events (tap times, cooldowns,
pending acks, un-committed feedback). One SessionState is built per bridge
session and handed to every component.
"""

from typing import Optional

from decksync.config import CacheMode
from decksync.controls import CacheEntry, LogicalControl, PendingFeedback, SentCommand
from decksync.logging_config import get_logger

logger = get_logger(__name__)

# Timer key prefixes shared between components
ACK_TIMER = "ack"
SETTLE_TIMER = "settle"
RESYNC_TIMER = "resync"


def normalize_track_name(track_name: str) -> str:
    """Cache key for a track name (case-insensitive, outer whitespace ignored)."""
    return track_name.strip().lower()


class TrackStateCache:
    """
    Last known control states, stored globally and per track.

    Every record goes to both scopes. Lookups prefer the current track's
    entry. Whether the global entry may stand in for a missing per-track one
    depends on the cache mode:

    - PER_TRACK: never (absence means "no information"), except while no
      track name has been received yet, when the global scope is the only one.
    - CLEAR_ON_TRACK_CHANGE: yes, and the global scope is wiped whenever the
      track changes, so it only ever holds state seen on the current track.
    """

    def __init__(self, mode: CacheMode = CacheMode.PER_TRACK):
        self._mode = mode
        self._global: dict[LogicalControl, CacheEntry] = {}
        self._per_track: dict[tuple[str, LogicalControl], CacheEntry] = {}
        self._track_name: Optional[str] = None
        self._track_key: Optional[str] = None

    @property
    def mode(self) -> CacheMode:
        return self._mode

    @property
    def track_name(self) -> Optional[str]:
        """Current track name as received, casing preserved."""
        return self._track_name

    def set_track(self, track_name: str) -> bool:
        """
        Switch the cache scope to a track.

        Args:
            track_name: DAW track name

        Returns:
            True if the (case-insensitive) track actually changed
        """
        key = normalize_track_name(track_name)
        if key == self._track_key:
            return False

        self._track_name = track_name.strip()
        self._track_key = key

        if self._mode == CacheMode.CLEAR_ON_TRACK_CHANGE and self._global:
            logger.debug(f"Clearing {len(self._global)} global cache entries on track change")
            self._global.clear()
        return True

    def record(self, control: LogicalControl, state: bool, timestamp: float) -> CacheEntry:
        """
        Store a control state in the global scope and, if a track is known, the track scope.

        Returns:
            The stored entry
        """
        entry = CacheEntry(state=state, timestamp=timestamp)
        self._global[control] = entry
        if self._track_key is not None:
            self._per_track[(self._track_key, control)] = entry
        return entry

    def lookup(self, control: LogicalControl) -> Optional[CacheEntry]:
        """
        Find the cached state for control in the current scope.

        Returns:
            Entry, or None when nothing usable is cached
        """
        if self._track_key is None:
            return self._global.get(control)

        entry = self._per_track.get((self._track_key, control))
        if entry is not None:
            return entry
        if self._mode == CacheMode.CLEAR_ON_TRACK_CHANGE:
            return self._global.get(control)
        return None

    def lookup_global(self, control: LogicalControl) -> Optional[CacheEntry]:
        return self._global.get(control)

    def entries_for_track(self, track_name: str) -> dict[LogicalControl, CacheEntry]:
        """All per-track entries recorded for a track."""
        key = normalize_track_name(track_name)
        return {control: entry for (track_key, control), entry in self._per_track.items() if track_key == key}

    def is_stale(self, entry: CacheEntry, now: float, stale_after: float) -> bool:
        return entry.age(now) > stale_after

    def clear(self) -> None:
        """Forget every cached state (the current track is kept)."""
        self._global.clear()
        self._per_track.clear()


class SessionState:
    """
    Owned store for one bridge session.

    Attributes:
        cache: Per-track state cache
        last_tap: Last accepted press time per context id (tap debounce)
        next_allowed: Earliest next send time per control (cooldown)
        awaiting_ack: Controls with an unconfirmed momentary send in flight
        last_sent: Last outbound command per control
        pending: Feedback waiting for its settle window to close
    """

    def __init__(self, cache: Optional[TrackStateCache] = None):
        self.cache = cache if cache is not None else TrackStateCache()
        self.last_tap: dict[str, float] = {}
        self.next_allowed: dict[LogicalControl, float] = {}
        self.awaiting_ack: set[LogicalControl] = set()
        self.last_sent: dict[LogicalControl, SentCommand] = {}
        self.pending: dict[LogicalControl, PendingFeedback] = {}

    def clear_track_scoped(self) -> None:
        """
        Drop ack, cooldown and debounce state.

        These belong to the track they were created on and must not block
        commands on the next one. Ack timers are canceled by the caller,
        which owns the TimerService.
        """
        if self.awaiting_ack or self.next_allowed or self.last_tap:
            logger.debug(
                f"Clearing track-scoped gates: {len(self.awaiting_ack)} acks, "
                f"{len(self.next_allowed)} cooldowns, {len(self.last_tap)} taps",
            )
        self.awaiting_ack.clear()
        self.next_allowed.clear()
        self.last_tap.clear()

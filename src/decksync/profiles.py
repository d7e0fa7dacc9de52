"""
Articulation profiles keyed by track name.

The bridge asks a ProfileResolver what to show on the articulation page when
the DAW's selected track changes. ProfileBook is the stock resolver: tracks
whose name ends in the word "KS" (keyswitch) are matched against the profile
keys by case-insensitive substring; all other tracks get a title but no
articulations.
"""

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, ValidationError

from decksync.logging_config import get_logger

logger = get_logger(__name__)

_KEYSWITCH_SUFFIX = re.compile(r"\bKS\b$", re.IGNORECASE)
_KEYSWITCH_TAIL = re.compile(r"\bKS\b\s*$", re.IGNORECASE)
_DASH_SUFFIX = re.compile(r"\s*-\s*.*")
_PARENTHESES = re.compile(r"\s*\(.*?\)\s*")
_MULTI_SPACE = re.compile(r"\s{2,}")


class Articulation(BaseModel):
    """One articulation: a label and the keyswitch note that selects it."""

    name: str = ""
    note: Optional[int] = Field(default=None, ge=0, le=127)

    def is_empty(self) -> bool:
        return not self.name.strip() and self.note is None


class ProfileDefinition(BaseModel):
    """Profile entry as stored in the profiles file."""

    articulations: list[Articulation] = Field(default_factory=list)


class TrackProfile(BaseModel):
    """What the articulation page shows for a track."""

    title: str = ""
    articulations: list[Articulation] = Field(default_factory=list)
    profile_key: Optional[str] = None


def extract_instrument_title(track_name: str) -> str:
    """
    Reduce a track name to the instrument title shown on the title key.

    Example:
        "Violin 1 - Long (Div) KS" -> "Violin 1"
    """
    if not track_name:
        return ""
    title = _KEYSWITCH_TAIL.sub("", track_name)
    title = _DASH_SUFFIX.sub("", title)
    title = _PARENTHESES.sub(" ", title)
    title = _MULTI_SPACE.sub(" ", title)
    return title.strip()


def is_keyswitch_track(track_name: str) -> bool:
    return bool(_KEYSWITCH_SUFFIX.search(track_name.strip()))


class ProfileResolver(ABC):
    """Maps a DAW track name to the articulation profile shown for it."""

    @abstractmethod
    def on_track_changed(self, track_name: str) -> TrackProfile:
        """
        Resolve the profile for a newly selected track.

        Args:
            track_name: Track name as sent by the DAW

        Returns:
            Title and articulations (possibly empty) for the track
        """
        pass


class ProfileBook(ProfileResolver):
    """Profile lookup backed by a {key: {articulations: [...]}} mapping."""

    def __init__(self, profiles: Optional[dict[str, ProfileDefinition]] = None):
        self._profiles: dict[str, ProfileDefinition] = dict(profiles or {})

    @classmethod
    def from_dict(cls, data: dict) -> "ProfileBook":
        """
        Build from raw (JSON-like) data.

        Raises:
            ValidationError: If an entry does not match ProfileDefinition
        """
        return cls({key: ProfileDefinition.model_validate(value) for key, value in data.items()})

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "ProfileBook":
        """
        Load profiles from a JSON file.

        A missing or unreadable file yields an empty book with a warning, so
        the bridge still runs (titles only).
        """
        profiles_path = Path(path)
        try:
            data = json.loads(profiles_path.read_text(encoding="utf-8"))
            book = cls.from_dict(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Profiles not loaded from {profiles_path} ({e}), using empty mapping")
            return cls()

        logger.info(f"Loaded {len(book)} articulation profiles from {profiles_path}")
        return book

    def __len__(self) -> int:
        return len(self._profiles)

    def keys(self) -> list[str]:
        return list(self._profiles.keys())

    def find_key(self, track_name: str) -> Optional[str]:
        """First profile key contained (case-insensitively) in the track name."""
        lowered = track_name.lower()
        for key in self._profiles:
            if key.lower() in lowered:
                return key
        return None

    def on_track_changed(self, track_name: str) -> TrackProfile:
        trimmed = track_name.strip()
        title = extract_instrument_title(trimmed)

        if not is_keyswitch_track(trimmed):
            logger.info(f"Track '{trimmed}' has no KS suffix, clearing articulations (title: '{title}')")
            return TrackProfile(title=title)

        key = self.find_key(trimmed)
        articulations = list(self._profiles[key].articulations) if key is not None else []
        logger.info(f"Profile match for '{trimmed}': {key or '(none)'} | {len(articulations)} articulations")
        return TrackProfile(title=title, articulations=articulations, profile_key=key)

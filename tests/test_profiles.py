"""Tests for articulation profiles and track-name parsing."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from decksync.profiles import (
    Articulation,
    ProfileBook,
    extract_instrument_title,
    is_keyswitch_track,
)

from conftest import PROFILES


class TestTitles:
    @pytest.mark.parametrize(
        "track_name,expected",
        [
            ("Violin 1 - Long (Div) KS", "Violin 1"),
            ("Cello KS", "Cello"),
            ("Horns (a4)  Sustain KS", "Horns Sustain"),
            ("Vocals", "Vocals"),
            ("", ""),
        ],
    )
    def test_extract_instrument_title(self, track_name, expected):
        assert extract_instrument_title(track_name) == expected

    def test_keyswitch_suffix(self):
        assert is_keyswitch_track("Violin KS")
        assert is_keyswitch_track("violin ks  ")
        assert not is_keyswitch_track("Violin")
        assert not is_keyswitch_track("Violin KSX")
        assert not is_keyswitch_track("KS Violin")


class TestProfileBook:
    def test_keyswitch_track_matches_by_substring(self, profiles):
        profile = profiles.on_track_changed("1st Violin - Long KS")
        assert profile.profile_key == "Violin"
        assert [a.name for a in profile.articulations] == ["Legato", "Spiccato", "", "Pizzicato"]
        assert profile.title == "1st Violin"

    def test_plain_track_gets_title_only(self, profiles):
        profile = profiles.on_track_changed("Violin")
        assert profile.articulations == []
        assert profile.profile_key is None
        assert profile.title == "Violin"

    def test_unknown_keyswitch_track(self, profiles):
        profile = profiles.on_track_changed("Oboe KS")
        assert profile.profile_key is None
        assert profile.articulations == []

    def test_find_key_is_case_insensitive(self, profiles):
        assert profiles.find_key("CELLO section KS") == "Cello"
        assert profiles.find_key("Flute") is None

    def test_from_dict_validates(self):
        with pytest.raises(ValidationError):
            ProfileBook.from_dict({"Bad": {"articulations": [{"name": "x", "note": 200}]}})


class TestProfileFile:
    def test_load(self, tmp_path: Path):
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps(PROFILES), encoding="utf-8")

        book = ProfileBook.from_json_file(path)
        assert len(book) == 2
        assert book.keys() == ["Violin", "Cello"]

    def test_missing_file_gives_empty_book(self, tmp_path: Path):
        book = ProfileBook.from_json_file(tmp_path / "nope.json")
        assert len(book) == 0
        assert book.on_track_changed("Violin KS").articulations == []

    def test_invalid_json_gives_empty_book(self, tmp_path: Path):
        path = tmp_path / "profiles.json"
        path.write_text("{not json", encoding="utf-8")
        assert len(ProfileBook.from_json_file(path)) == 0


class TestArticulation:
    def test_is_empty(self):
        assert Articulation().is_empty()
        assert Articulation(name="  ").is_empty()
        assert not Articulation(name="Legato").is_empty()
        assert not Articulation(note=12).is_empty()

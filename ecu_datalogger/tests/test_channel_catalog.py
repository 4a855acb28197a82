"""Tests for manufacturer channel catalog loading."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from ecu_datalogger.channel_catalog import load_channel_catalog, select_channels
from ecu_datalogger.schemas import NumericType

_VALID: Dict[str, Any] = {
    "rail-pressure": {
        "command": "22DAB3",
        "decode": {"type": "u16be", "byte_index": 3, "scale": 0.5, "offset": 0},
    },
    "knock-retard-max": {
        "command": " 22D92E ",
        "decode": {"type": "i16be", "byte_index": 3, "scale": 0.1, "offset": 0},
    },
}


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "channels.json"
    path.write_text(content, encoding="utf-8")
    return path


def test_load_valid_catalog(tmp_path: Path) -> None:
    catalog = load_channel_catalog(_write(tmp_path, json.dumps(_VALID)))
    assert set(catalog) == {"rail-pressure", "knock-retard-max"}
    rail = catalog["rail-pressure"]
    assert rail.command == "22DAB3"
    assert rail.decode.numeric_type is NumericType.U16BE
    assert rail.decode.byte_index == 3
    assert rail.decode.scale == 0.5


def test_command_whitespace_stripped(tmp_path: Path) -> None:
    catalog = load_channel_catalog(_write(tmp_path, json.dumps(_VALID)))
    assert catalog["knock-retard-max"].command == "22D92E"


def test_missing_file_is_empty(tmp_path: Path) -> None:
    assert load_channel_catalog(tmp_path / "nope.json") == {}


def test_invalid_json_is_empty(tmp_path: Path) -> None:
    assert load_channel_catalog(_write(tmp_path, "{not json")) == {}


def test_missing_decode_drops_entry(tmp_path: Path) -> None:
    content = json.dumps({"rail-pressure": {"command": "22DAB3"}})
    assert load_channel_catalog(_write(tmp_path, content)) == {}


def test_unknown_numeric_type_drops_only_that_entry(tmp_path: Path) -> None:
    bad = json.loads(json.dumps(_VALID))
    bad["rail-pressure"]["decode"]["type"] = "f32"
    catalog = load_channel_catalog(_write(tmp_path, json.dumps(bad)))
    assert set(catalog) == {"knock-retard-max"}
    assert catalog["knock-retard-max"].decode.numeric_type is NumericType.I16BE


def test_negative_byte_index_drops_only_that_entry(tmp_path: Path) -> None:
    bad = json.loads(json.dumps(_VALID))
    bad["rail-pressure"]["decode"]["byte_index"] = -1
    catalog = load_channel_catalog(_write(tmp_path, json.dumps(bad)))
    assert set(catalog) == {"knock-retard-max"}


def test_non_object_entry_dropped(tmp_path: Path) -> None:
    content = dict(_VALID, broken="22D000")
    catalog = load_channel_catalog(_write(tmp_path, json.dumps(content)))
    assert set(catalog) == {"rail-pressure", "knock-retard-max"}


def test_top_level_list_is_empty(tmp_path: Path) -> None:
    assert load_channel_catalog(_write(tmp_path, "[]")) == {}


def test_shipped_catalog_loads(shipped_catalog_path: Path) -> None:
    catalog = load_channel_catalog(shipped_catalog_path)
    assert "rail-pressure" in catalog
    assert all(channel.command for channel in catalog.values())


def test_select_channels_exact_match_in_key_order(tmp_path: Path) -> None:
    catalog = load_channel_catalog(_write(tmp_path, json.dumps(_VALID)))
    pairs = select_channels(
        catalog, ["knock-retard-max", "engine-rpm", "RAIL-PRESSURE", "rail-pressure"]
    )
    assert [key for key, _ in pairs] == ["knock-retard-max", "rail-pressure"]

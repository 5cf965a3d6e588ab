"""
Tests for scan_report.py: the full pipeline from detector output to report.
"""

import json

import pytest

from dice_builders import (
    GENESIS_COLORS,
    GENESIS_PIPS,
    GENESIS_SUCCESSOR_COLORS,
    TRAY_SPACING,
    make_die,
    make_tray,
)
from scan_report import format_report, load_observations, main, process_observations

SECOND_PIPS = [2, 2, 2, 2, 3, 3, 3, 3, 2]
THIRD_COLORS = ["orange"] * 5 + ["yellow"] * 4


@pytest.fixture
def scanned_dice():
    """Three trays left to right plus a weaker duplicate of one die."""
    dice = (
        make_tray(GENESIS_COLORS, GENESIS_PIPS, origin_x=0)
        + make_tray(GENESIS_SUCCESSOR_COLORS, SECOND_PIPS, origin_x=TRAY_SPACING)
        + make_tray(THIRD_COLORS, [2] * 9, origin_x=2 * TRAY_SPACING)
    )
    duplicate = make_die("blue", 2, TRAY_SPACING + 3, 2, confidence=0.3)
    return dice + [duplicate]


@pytest.fixture
def observation_file(tmp_path, scanned_dice):
    path = tmp_path / "scan.json"
    path.write_text(json.dumps([die.as_dict() for die in scanned_dice]))
    return path


def test_process_observations_builds_full_chain(scanned_dice):
    result = process_observations(scanned_dice, difficulty=25)

    assert result.total_blocks == 3
    assert result.valid_blocks == 3
    assert result.longest_chain == ("block-0", "block-1", "block-2")
    assert [validated.column for validated in result.blocks] == [0, 1, 2]
    assert all(len(validated.dice) == 9 for validated in result.blocks)


def test_process_observations_with_lower_difficulty(scanned_dice):
    result = process_observations(scanned_dice, difficulty=20)

    assert not result.get_block("block-1").is_valid
    assert result.longest_chain == ("block-0",)


def test_process_observations_without_dice():
    result = process_observations([], difficulty=25)
    assert result.total_blocks == 0
    assert result.longest_chain == ()


def test_load_observations(observation_file, scanned_dice):
    assert load_observations(str(observation_file)) == scanned_dice


def test_load_observations_accepts_object(tmp_path, scanned_dice):
    path = tmp_path / "scan.json"
    path.write_text(json.dumps({"dice": [die.as_dict() for die in scanned_dice]}))
    assert load_observations(str(path)) == scanned_dice


@pytest.mark.parametrize("content", [
    '{"blocks": []}',
    '[{"color": "red"}]',
    '[{"color": "red", "pips": 9, "bounds": {"x": 0, "y": 0, "width": 1, "height": 1}}]',
    "not json",
])
def test_load_observations_rejects_malformed_input(tmp_path, content):
    path = tmp_path / "scan.json"
    path.write_text(content)
    with pytest.raises(ValueError):
        load_observations(str(path))


def test_format_report(scanned_dice):
    report = format_report(process_observations(scanned_dice, difficulty=20))

    assert "Blocks: 3  Valid: 1  Invalid: 2  Difficulty: 20" in report
    assert "Longest chain: block-0" in report
    assert "[VALID] block-0  column 0  total 24  (genesis, in chain)" in report
    assert "    - Total 22 exceeds difficulty 20" in report


def test_main_prints_json(observation_file, capsys):
    assert main([str(observation_file), "--json"]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output["longest_chain"] == ["block-0", "block-1", "block-2"]
    assert output["difficulty"] == 25
    assert output["blocks"][1]["predecessor_id"] == "block-0"


def test_main_prints_report(observation_file, capsys):
    assert main([str(observation_file), "--difficulty", "30"]) == 0
    assert "Longest chain: block-0 -> block-1 -> block-2" in capsys.readouterr().out


def test_main_missing_file(tmp_path):
    assert main([str(tmp_path / "missing.json")]) == 1


@pytest.mark.parametrize("difficulty", ["0", "27", "40"])
def test_main_rejects_difficulty_outside_options(observation_file, difficulty):
    with pytest.raises(SystemExit):
        main([str(observation_file), "--difficulty", difficulty])


@pytest.mark.parametrize("difficulty", ["20", "25", "30", "35"])
def test_main_accepts_difficulty_options(observation_file, difficulty, capsys):
    assert main([str(observation_file), "--difficulty", difficulty, "--json"]) == 0
    assert json.loads(capsys.readouterr().out)["difficulty"] == int(difficulty)

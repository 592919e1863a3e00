"""Tests for the command line interface."""

import json
from unittest.mock import patch

from click.testing import CliRunner

from chatons.cli import cli, parse_data


def test_parse_data():
    assert parse_data(("qualites.costaud=2", "name=Pompon", "bonus=1.5")) == {
        "qualites": {"costaud": 2},
        "name": "Pompon",
        "bonus": 1.5,
    }


class TestRoll:
    def test_maximize(self):
        result = CliRunner().invoke(cli, ["roll", "2d6 + 3", "--maximize"])
        assert result.exit_code == 0
        assert "2d6 + 3 = 12 + 3 = 15" in result.output
        assert "2d6: 6 6" in result.output

    def test_roll_data(self):
        result = CliRunner().invoke(
            cli, ["roll", "@qualites.costaud D6", "-d", "qualites.costaud=2", "--minimize"]
        )
        assert result.exit_code == 0
        assert "2d6 = 2 = 2" in result.output

    def test_json(self):
        with patch("chatons.dice.random.randint", side_effect=[4]):
            result = CliRunner().invoke(cli, ["roll", "1d6 + 1", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["total"] == 5
        assert data["evaluated"]

    def test_bad_formula(self):
        result = CliRunner().invoke(cli, ["roll", "(2+1D6"])
        assert result.exit_code == 1
        assert "Unbalanced" in result.output

    def test_exclusive_modes(self):
        result = CliRunner().invoke(cli, ["roll", "1d6", "--minimize", "--maximize"])
        assert result.exit_code == 2


class TestCheck:
    def test_reroll(self):
        with patch("chatons.dice.random.randint", side_effect=[2, 5, 4, 3]):
            result = CliRunner().invoke(cli, ["check", "Malin", "4", "--reroll", "1"])
        assert result.exit_code == 0
        assert "Malin: 3/3 successes -> passed" in result.output
        assert "[2] ~5~ [4] [3]" in result.output

    def test_json(self):
        with patch("chatons.dice.random.randint", side_effect=[1, 2, 3, 4]):
            result = CliRunner().invoke(cli, ["check", "Costaud", "3", "--advantage", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["formula"] == "4D6cs<=3"
        assert data["total"] == 3

    def test_exclusive_modes(self):
        result = CliRunner().invoke(cli, ["check", "Malin", "4", "-a", "-d"])
        assert result.exit_code == 2


def test_validate():
    runner = CliRunner()
    assert runner.invoke(cli, ["validate", "3d6 + 2"]).exit_code == 0
    assert runner.invoke(cli, ["validate", "(3d6"]).exit_code == 1


def test_validate_placeholder_text():
    result = CliRunner().invoke(cli, ["validate", "$$F0$$"])
    assert result.exit_code == 1
    assert "Invalid formula" in result.output

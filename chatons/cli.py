"""Click CLI for the roll engine."""

from __future__ import annotations

import json
import logging

import click

from chatons.config import settings
from chatons.dice import EvaluationMode
from chatons.errors import RollError
from chatons.models import CheckMode, OutcomeState, format_number
from chatons.outcome import reroll, render_context, roll_check, tooltip
from chatons.roll import Roll


def _coerce(value: str):
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


def parse_data(items: tuple[str, ...]) -> dict:
    """Build nested roll data from ``key.path=value`` items."""
    data: dict = {}
    for item in items:
        if "=" not in item:
            raise click.BadParameter(f"Expected key=value, got {item!r}", param_hint="--data")
        path, value = item.split("=", 1)
        *parents, key = path.strip().split(".")
        node = data
        for parent in parents:
            node = node.setdefault(parent, {})
        node[key] = _coerce(value.strip())
    return data


@click.group()
@click.option("--log-level", default=None, help="Logging level (default from CHATONS_LOG_LEVEL).")
def cli(log_level: str | None) -> None:
    """Dice formula engine for Donjons & Chatons."""
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("formula")
@click.option("--data", "-d", "data_items", multiple=True, help="Roll data as key.path=value.")
@click.option("--minimize", is_flag=True, help="Every die shows 1.")
@click.option("--maximize", is_flag=True, help="Every die shows its highest face.")
@click.option("--json", "as_json", is_flag=True, help="Print the evaluated roll as JSON.")
def roll(
    formula: str,
    data_items: tuple[str, ...],
    minimize: bool,
    maximize: bool,
    as_json: bool,
) -> None:
    """Roll a dice formula such as '4d6kh3 + @bonus'."""
    if minimize and maximize:
        raise click.UsageError("--minimize and --maximize are exclusive.")
    mode = EvaluationMode.RANDOM
    if minimize:
        mode = EvaluationMode.MINIMIZE
    elif maximize:
        mode = EvaluationMode.MAXIMIZE

    try:
        r = Roll(formula, parse_data(data_items)).evaluate(mode=mode)
    except RollError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(r.to_json(indent=2))
        return
    click.echo(f"{r.expression} = {r.result} = {format_number(r.total)}")
    for group in r.dice:
        values = " ".join(
            format_number(d.face_value) if d.active else f"~{format_number(d.face_value)}~"
            for d in group.results
        )
        click.echo(f"  {group.formula}: {values}")


@cli.command()
@click.argument("label")
@click.argument("difficulty", type=int)
@click.option("--advantage", "-a", is_flag=True, help="Roll 4d6 instead of 3d6.")
@click.option("--disadvantage", "-d", is_flag=True, help="Roll 2d6 instead of 3d6.")
@click.option("--reroll", "reroll_index", type=int, default=None,
              help="On a failed check, reroll the die at this index.")
@click.option("--json", "as_json", is_flag=True, help="Print the outcome as JSON.")
def check(
    label: str,
    difficulty: int,
    advantage: bool,
    disadvantage: bool,
    reroll_index: int | None,
    as_json: bool,
) -> None:
    """Roll a success-counting check against DIFFICULTY."""
    if advantage and disadvantage:
        raise click.UsageError("--advantage and --disadvantage are exclusive.")
    mode = CheckMode.STANDARD
    if advantage:
        mode = CheckMode.ADVANTAGE
    elif disadvantage:
        mode = CheckMode.DISADVANTAGE

    try:
        outcome = roll_check(label, difficulty, mode)
        first = tooltip(outcome)
        if reroll_index is not None:
            if outcome.reroll_available:
                reroll(outcome, reroll_index)
            else:
                click.echo("No reroll: the check already passed.", err=True)
    except (RollError, ValueError) as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps(render_context(outcome), indent=2))
        return
    click.echo(f"{label}: {outcome.success_count}/{outcome.baseline} successes "
               f"-> {'passed' if outcome.passed else 'failed'}")
    click.echo(f"  {first}")
    if outcome.state == OutcomeState.AMENDED:
        click.echo(f"  {tooltip(outcome)}")


@cli.command()
@click.argument("formula")
def validate(formula: str) -> None:
    """Check that FORMULA parses."""
    if not Roll.validate(formula):
        raise click.ClickException(f"Invalid formula: {formula}")
    click.echo("valid")

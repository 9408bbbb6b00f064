"""Command-line interface for dealcalc."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from dealcalc import __version__


@click.group()
@click.version_option(version=__version__, prog_name="dealcalc")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Config file (default: ./dealcalc.yaml if present).",
)
@click.pass_context
def main(ctx: click.Context, config_path: str | None) -> None:
    """dealcalc -- evaluate underwriting formulas for a deal."""
    from dealcalc.config import configure_logging, load_config

    try:
        config = load_config(Path(config_path) if config_path else None)
    except ValueError as e:
        raise click.ClickException(str(e))
    configure_logging(config)
    ctx.obj = config


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _parse_overrides(overrides: tuple[str, ...]) -> dict[str, float]:
    values: dict[str, float] = {}
    for item in overrides:
        if "=" not in item:
            raise click.ClickException(f"Invalid --set format: {item!r}. Use Name=value.")
        k, v = item.split("=", 1)
        try:
            values[k.strip()] = float(v)
        except ValueError:
            raise click.ClickException(f"Invalid --set value for {k!r}: {v!r} is not a number.")
    return values


def _load_inputs(path: str | None) -> Any:
    from dealcalc.config import load_document
    from dealcalc.formulas import UnderwritingInputs

    if path is None:
        return UnderwritingInputs()
    try:
        return UnderwritingInputs.model_validate(load_document(Path(path)))
    except (ValueError, ValidationError) as e:
        raise click.ClickException(f"Invalid inputs file: {e}")


def _load_settings(path: str | None) -> Any:
    from dealcalc.config import load_document
    from dealcalc.formulas import FormulaSettings

    if path is None:
        return FormulaSettings.defaults()
    try:
        return FormulaSettings.model_validate(load_document(Path(path)))
    except (ValueError, ValidationError) as e:
        raise click.ClickException(f"Invalid settings file: {e}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def variables(as_json: bool) -> None:
    """List the variables formulas may reference."""
    from dealcalc.formulas import FORMULA_VARIABLES, registry_payload

    if as_json:
        click.echo(json.dumps(registry_payload(), indent=2))
        return
    for v in FORMULA_VARIABLES:
        click.echo(f"  {v.name:<12} {v.label:<24} default={v.default_value:g}")


@main.command()
@click.argument("formula")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def validate(formula: str, as_json: bool) -> None:
    """Check FORMULA; exits with status 1 when it is invalid."""
    from dealcalc.formulas import validate_formula

    result = validate_formula(formula)
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.valid:
        click.echo("OK")
    else:
        click.echo(f"Invalid: {result.error}", err=True)
    if not result.valid:
        sys.exit(1)


@main.command("eval")
@click.argument("formula")
@click.option("--inputs", "inputs_path", default=None, type=click.Path(exists=True, dir_okay=False), help="Underwriting inputs (YAML/JSON).")
@click.option("--set", "overrides", multiple=True, help="Override a variable as Name=value (e.g. ARV=250000).")
@click.option("--explain", is_flag=True, help="Show the parsed tree and any fallbacks applied.")
def eval_cmd(formula: str, inputs_path: str | None, overrides: tuple[str, ...], explain: bool) -> None:
    """Evaluate FORMULA against underwriting inputs."""
    from dealcalc.formulas import (
        FormulaError,
        build_formula_context,
        evaluate_with_diagnostics,
        parse_formula,
        variable_names,
    )
    from dealcalc.formulas.ast import to_source

    context = build_formula_context(_load_inputs(inputs_path))
    extra = _parse_overrides(overrides)
    unknown = sorted(set(extra) - set(variable_names()))
    if unknown:
        raise click.ClickException(f"Unknown variable(s) in --set: {', '.join(unknown)}")
    context.update(extra)

    result = evaluate_with_diagnostics(formula, context)
    click.echo(f"{result.value:.10g}")
    if explain:
        try:
            click.echo(f"parsed:   {to_source(parse_formula(formula))}")
        except FormulaError as e:
            click.echo(f"parsed:   <{e.message}>")
        for note in result.fallbacks:
            click.echo(f"fallback: {note}")


@main.command()
@click.option("--inputs", "inputs_path", default=None, type=click.Path(exists=True, dir_okay=False), help="Underwriting inputs (YAML/JSON).")
@click.option("--settings", "settings_path", default=None, type=click.Path(exists=True, dir_okay=False), help="Saved formula settings (YAML/JSON).")
@click.option("--raw", is_flag=True, help="Do not round or clamp offers.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def offers(config: dict[str, Any], inputs_path: str | None, settings_path: str | None, raw: bool, as_json: bool) -> None:
    """Compute MAO, 70% rule, Buy-Box and custom calculator offers."""
    from dealcalc.underwriting import compute_offers

    settings = _load_settings(settings_path)
    inputs = _load_inputs(inputs_path)
    round_offers = bool(config.get("round_offers", True)) and not raw
    result = compute_offers(settings, inputs, round_offers=round_offers)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return
    for key, value in result.items():
        if key == "custom" and settings.custom_calculator is not None:
            label = settings.custom_calculator.name
        else:
            label = settings.formula(key).name
        marker = ""
        if key != "custom" and not settings.formula(key).is_default:
            marker = " (custom formula)"
        click.echo(f"  {label:<28} {value:>14,.2f}{marker}")


@main.command()
@click.argument("slot", type=click.Choice(["mao", "rule70", "buyBox"]))
@click.argument("formula")
@click.option("--settings", "settings_path", default=None, type=click.Path(exists=True, dir_okay=False), help="Current settings (YAML/JSON); defaults if omitted.")
@click.pass_obj
def save(config: dict[str, Any], slot: str, formula: str, settings_path: str | None) -> None:
    """Validate FORMULA for SLOT and print the updated settings as JSON.

    Nothing is printed to stdout when the formula is rejected.
    """
    from dealcalc.formulas import FormulaValidationError

    settings = _load_settings(settings_path)
    try:
        settings.save_formula(
            slot,
            formula,
            normalize_whitespace=bool(config.get("normalize_default_whitespace", False)),
        )
    except FormulaValidationError as e:
        raise click.ClickException(e.message)
    click.echo(json.dumps(settings.model_dump(by_alias=True), indent=2))


@main.command()
@click.option("--settings", "settings_path", default=None, type=click.Path(exists=True, dir_okay=False), help="Current settings (YAML/JSON).")
def reset(settings_path: str | None) -> None:
    """Print settings with the named formulas restored; the custom calculator is kept."""
    settings = _load_settings(settings_path)
    settings.reset_to_defaults()
    click.echo(json.dumps(settings.model_dump(by_alias=True), indent=2))

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
import yaml

from beadgraph.core.config.analysis_config import AnalysisConfig, ConfigError, load_and_merge
from beadgraph.core.cook.cook_formula import cook_formula, cooked_to_dict, parse_var_assignments
from beadgraph.core.errors import (
    CycleDetectedError,
    FormulaLoadError,
    FormulaValidationError,
    GraphError,
)
from beadgraph.core.graph.critical_path import analyze_beads, compute_critical_path
from beadgraph.core.graph.cycles import find_cycles, format_cycle
from beadgraph.core.graph.molecule import build_molecule
from beadgraph.core.io.load_formula import load_beads, load_formula
from beadgraph.core.lint.lint_formula import lint_formula
from beadgraph.core.model import CriticalPathResult, Formula, Molecule
from beadgraph.core.validate.validate_formula import summarize_formula, validate_formula

app = typer.Typer(add_completion=False, no_args_is_help=True)

FORMATS = ("text", "json")


@app.callback()
def _callback(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level for stderr"),
) -> None:
    """Bead graph CLI: molecules, ordering and critical paths."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a formula file (.yaml/.yml/.json/.toml)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a formula file's structure."""
    _check_format(format, "validate")

    try:
        raw = load_formula(path)
    except FormulaLoadError as e:
        _fail([e], command="validate", format=format, exit_code=1)

    formula, errors = validate_formula(raw)
    if errors or formula is None:
        _fail(list(errors), command="validate", format=format, exit_code=2)

    if format == "text":
        typer.echo(summarize_formula(formula))
        return

    _emit_json(
        "validate",
        ok=True,
        errors=[],
        exit_code=0,
        summary={
            "name": formula.name,
            "type": formula.type,
            "version": formula.version,
            "step_count": len(formula.steps),
            "leg_count": len(formula.legs),
            "vars": sorted(formula.vars.keys()),
        },
    )


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to a formula file (.yaml/.yml/.json/.toml)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Lint a formula file (rules beyond structural validation)."""
    _check_format(format, "lint")

    try:
        raw = load_formula(path)
    except FormulaLoadError as e:
        _fail([e], command="lint", format=format, exit_code=1)

    _, validation_errors = validate_formula(raw)
    errors: list[GraphError] = [*lint_formula(raw), *validation_errors]
    if errors:
        _fail(errors, command="lint", format=format, exit_code=2)

    if format == "json":
        _emit_json("lint", ok=True, errors=[], exit_code=0)
    typer.echo("OK: lint passed")


@app.command("cook")
def cook(
    path: str = typer.Argument(..., help="Path to a formula file (.yaml/.yml/.json/.toml)"),
    out: str = typer.Option(..., "--out", help="Path to write the cooked YAML formula"),
    var: Optional[list[str]] = typer.Option(None, "--var", help="Variable assignment key=value"),
) -> None:
    """Substitute {{var}} placeholders and write the cooked formula."""
    formula = _load_valid_formula(path, command="cook", format="text")
    try:
        cooked = cook_formula(formula, parse_var_assignments(var or []))
    except GraphError as e:
        _fail([_with_file(e, path)], command="cook", format="text", exit_code=2)

    p = Path(out)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        yaml.safe_dump(cooked_to_dict(cooked), f, sort_keys=False, allow_unicode=True)
    typer.echo(f"OK: wrote cooked formula to {out}")


@app.command("molecule")
def molecule(
    path: str = typer.Argument(..., help="Path to a formula file (.yaml/.yml/.json/.toml)"),
    var: Optional[list[str]] = typer.Option(None, "--var", help="Variable assignment key=value"),
    strict: Optional[bool] = typer.Option(
        None, "--strict/--lenient", help="Fail on needs that reference unknown steps"
    ),
    config: Optional[str] = typer.Option(None, "--config", help="Analysis settings YAML file"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Build the bead molecule and its execution order."""
    _check_format(format, "molecule")
    settings = _load_config(config, command="molecule", format=format)
    formula = _load_valid_formula(path, command="molecule", format=format)

    try:
        cooked = cook_formula(formula, parse_var_assignments(var or []))
        mol = build_molecule(cooked, strict=settings.strict if strict is None else strict)
    except GraphError as e:
        _fail([_with_file(e, path)], command="molecule", format=format, exit_code=2)

    if format == "json":
        _emit_json("molecule", ok=True, errors=[], exit_code=0, molecule=mol.to_dict())

    typer.echo(f"Molecule: {mol.formula_name} ({mol.formula_type})")
    typer.echo(f"Beads: {len(mol.beads)}")
    typer.echo("Order: " + ", ".join(mol.beads[i].id for i in mol.execution_order))
    if mol.has_cycle:
        typer.echo(
            f"WARN: dependency cycle detected ({len(mol.execution_order)} of "
            f"{len(mol.beads)} beads ordered)",
            err=True,
        )
        for cycle in _molecule_cycles(mol):
            typer.echo(f"WARN: cycle: {format_cycle(cycle)}", err=True)


@app.command("critical-path")
def critical_path(
    path: str = typer.Argument(..., help="Path to a bead list, or a formula with --from-formula"),
    from_formula: bool = typer.Option(
        False, "--from-formula", help="Treat PATH as a formula and analyze its molecule"
    ),
    var: Optional[list[str]] = typer.Option(None, "--var", help="Variable assignment key=value"),
    strict: Optional[bool] = typer.Option(
        None, "--strict/--lenient", help="Fail on references to unknown beads"
    ),
    config: Optional[str] = typer.Option(None, "--config", help="Analysis settings YAML file"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Compute total duration, slack and the critical path."""
    _check_format(format, "critical-path")
    settings = _load_config(config, command="critical-path", format=format)
    is_strict = settings.strict if strict is None else strict

    try:
        if from_formula:
            formula = _load_valid_formula(path, command="critical-path", format=format)
            cooked = cook_formula(formula, parse_var_assignments(var or []))
            mol = build_molecule(cooked, strict=is_strict)
            result = compute_critical_path(
                mol.to_bead_nodes(),
                strict=is_strict,
                default_duration=settings.default_duration,
            )
        else:
            raw = load_beads(path)
            result = analyze_beads(
                raw,
                strict=is_strict,
                default_duration=settings.default_duration,
                file=raw["__file__"],
            )
    except FormulaLoadError as e:
        _fail([e], command="critical-path", format=format, exit_code=1)
    except GraphError as e:
        _fail([_with_file(e, path)], command="critical-path", format=format, exit_code=2)

    if format == "json":
        _emit_json("critical-path", ok=True, errors=[], exit_code=0, result=result.to_dict())
    _print_critical_path(result)


def _print_critical_path(result: CriticalPathResult) -> None:
    typer.echo(f"Total duration: {result.total_duration}")
    typer.echo("Critical path: " + (" -> ".join(result.path) if result.path else "(none)"))
    if result.slack:
        typer.echo("Slack:")
        for bid, s in result.slack.items():
            typer.echo(f"  {bid}: {s}")


def _molecule_cycles(mol: Molecule) -> list[list[str]]:
    id_to_deps: dict[str, list[str]] = {}
    for b in mol.beads:
        id_to_deps[b.id] = [mol.beads[d].id for d in b.depends_on]
    return find_cycles(id_to_deps)


def _load_valid_formula(path: str, *, command: str, format: str) -> Formula:
    try:
        raw = load_formula(path)
    except FormulaLoadError as e:
        _fail([e], command=command, format=format, exit_code=1)

    formula, errors = validate_formula(raw)
    if errors or formula is None:
        _fail(list(errors), command=command, format=format, exit_code=2)
    return formula


def _load_config(config: Optional[str], *, command: str, format: str) -> AnalysisConfig:
    try:
        return load_and_merge(config)
    except FileNotFoundError:
        err: GraphError = FormulaLoadError(
            code="E_CONFIG_FILE_NOT_FOUND",
            message=f"config file not found: {config}",
            path="config",
        )
        _fail([err], command=command, format=format, exit_code=1)
    except ConfigError as e:
        err = FormulaValidationError(code="E_CONFIG_INVALID", message=str(e), path="config")
        _fail([err], command=command, format=format, exit_code=2)


def _with_file(e: GraphError, path: str) -> GraphError:
    if e.file:
        return e
    if isinstance(e, CycleDetectedError):
        return CycleDetectedError(
            code=e.code, message=e.message, file=path, path=e.path, cycle_ids=e.cycle_ids
        )
    return type(e)(code=e.code, message=e.message, file=path, path=e.path)


def _check_format(format: str, command: str) -> None:
    if format not in FORMATS:
        err = FormulaValidationError(
            code=f"E_{command.upper().replace('-', '_')}_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: {', '.join(FORMATS)})",
            file=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _to_item(e: GraphError) -> dict[str, Any]:
    if isinstance(e, FormulaLoadError):
        source = "load"
    elif e.code.startswith("L_"):
        source = "lint"
    else:
        source = "validate" if isinstance(e, FormulaValidationError) else "analyze"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "source": source,
    }


def _emit_json(
    command: str,
    *,
    ok: bool,
    errors: list[GraphError],
    exit_code: int,
    **extra: Any,
) -> NoReturn:
    payload = {
        "tool": "beadgraph",
        "command": command,
        "ok": ok,
        "error_count": len(errors),
        "errors": [_to_item(e) for e in _sorted(errors)],
        **extra,
    }
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _fail(errors: list[GraphError], *, command: str, format: str, exit_code: int) -> NoReturn:
    if format == "json":
        _emit_json(command, ok=False, errors=errors, exit_code=exit_code)
    _print_errors(errors)
    raise typer.Exit(code=exit_code)


def _sorted(errors: list[GraphError]) -> list[GraphError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


def _print_errors(errors: list[GraphError]) -> None:
    for e in _sorted(errors):
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="beadgraph")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()

from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Any

import yaml

from beadgraph.core.errors import FormulaLoadError


SUPPORTED_SUFFIXES = {".yaml", ".yml", ".json", ".toml"}


def _read_document(path: str) -> tuple[Path, Any]:
    p = Path(path)
    if not p.exists():
        raise FormulaLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise FormulaLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported formats are .yaml/.yml, .json and .toml",
            file=str(p),
        )

    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise FormulaLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            data = tomllib.loads(raw_text)
    except Exception as e:
        code = {".json": "E_JSON_PARSE", ".toml": "E_TOML_PARSE"}.get(suffix, "E_YAML_PARSE")
        raise FormulaLoadError(code=code, message=str(e), file=str(p)) from e

    return p, data


def load_formula(path: str) -> dict[str, Any]:
    """Load a YAML/JSON/TOML formula file.

    Returns the top-level mapping plus ``__file__``.
    Does not coerce types; the validator owns shape checking.
    """

    p, data = _read_document(path)
    if not isinstance(data, dict):
        raise FormulaLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    normalized = dict(data)
    normalized["__file__"] = str(p)
    return normalized


def load_beads(path: str) -> dict[str, Any]:
    """Load a bead list file for critical path analysis.

    Accepts a top-level list of beads or a mapping with a ``beads`` key and
    returns ``{"beads": ..., "__file__": ...}``.
    """

    p, data = _read_document(path)
    if isinstance(data, list):
        beads = data
    elif isinstance(data, dict):
        beads = data.get("beads")
    else:
        raise FormulaLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a list of beads or a mapping with 'beads'",
            file=str(p),
        )
    return {"beads": beads, "__file__": str(p)}

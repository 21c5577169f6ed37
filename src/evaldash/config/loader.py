from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DashboardConfig,
    EvaluationConfig,
    EvaluationSheets,
    GrantConfig,
    SalesConfig,
)

"""Config loader.

Responsibilities:
- Resolve the config path (``--config`` > ``EVALDASH_CONFIG`` > default)
- Load YAML and validate it against the bundled JSON schema
- Apply defaults and ``EVALDASH_SOURCE_<ID>`` location overrides
"""

__all__ = [
    "CONFIG_ENV_VAR",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "SOURCE_ENV_PREFIX",
    "load_config",
    "resolve_config_path",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/dashboard.yml")
CONFIG_ENV_VAR = "EVALDASH_CONFIG"
SOURCE_ENV_PREFIX = "EVALDASH_SOURCE_"


class ConfigError(Exception):
    pass


def resolve_config_path(cli_value: str | Path | None = None) -> Path:
    if cli_value:
        return Path(cli_value)
    env_value = os.getenv(CONFIG_ENV_VAR)
    if env_value:
        return Path(env_value)
    return DEFAULT_CONFIG_PATH


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing or invalid, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"config validation failed at {location}: {e.message}") from e


def _apply_source_overrides(sources: dict[str, str], environ: Mapping[str, str]) -> dict[str, str]:
    resolved = dict(sources)
    for source_id in list(resolved):
        override = environ.get(f"{SOURCE_ENV_PREFIX}{source_id.upper()}")
        if override:
            resolved[source_id] = override
    return resolved


def _sales_config(raw: dict[str, Any]) -> SalesConfig:
    defaults = SalesConfig()
    return SalesConfig(
        source=raw.get("source", defaults.source),
        overall_sheet=raw.get("overall_sheet", defaults.overall_sheet),
        regions=dict(raw.get("regions") or defaults.regions),
        region_prefixes=tuple(raw.get("region_prefixes") or defaults.region_prefixes),
        percent_fraction_numbers=raw.get("percent_fraction_numbers", defaults.percent_fraction_numbers),
    )


def _evaluation_config(raw: dict[str, Any]) -> EvaluationConfig:
    defaults = EvaluationConfig()
    sheets_raw = raw.get("sheets") or {}
    layout_raw = raw.get("answer_layout") or {}
    sheets = EvaluationSheets(
        rubric=sheets_raw.get("rubric", defaults.sheets.rubric),
        self_evaluation=sheets_raw.get("self", defaults.sheets.self_evaluation),
        manager_evaluation=sheets_raw.get("manager", defaults.sheets.manager_evaluation),
        total_score=sheets_raw.get("total_score", defaults.sheets.total_score),
    )
    scale = raw.get("score_scale")
    return EvaluationConfig(
        source=raw.get("source", defaults.source),
        sheets=sheets,
        name_column=layout_raw.get("name_column", defaults.name_column),
        department_column=layout_raw.get("department_column", defaults.department_column),
        answers_start_column=layout_raw.get("answers_start_column", defaults.answers_start_column),
        score_name_column=raw.get("score_name_column", defaults.score_name_column),
        score_scale={str(k): float(v) for k, v in scale.items()} if scale else None,
    )


def _grant_configs(raw: dict[str, Any]) -> tuple[GrantConfig, ...]:
    grants: list[GrantConfig] = []
    for key, entry in raw.items():
        role = entry["role"]
        departments = tuple(entry.get("departments") or ())
        sales_tab = entry.get("sales_tab")
        if role == "manager" and (not departments or not sales_tab):
            raise ConfigError(f"grant '{key}': manager requires departments and sales_tab")
        grants.append(
            GrantConfig(
                key=str(key),
                role=role,
                departments=departments,
                sales_tab=sales_tab or "all",
                department_key=entry.get("department_key") or None,
            )
        )
    return tuple(grants)


def load_config(path: Path, environ: Mapping[str, str] | None = None) -> DashboardConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    env = os.environ if environ is None else environ
    sources = _apply_source_overrides({str(k): str(v) for k, v in data["sources"].items()}, env)
    sales = _sales_config(data.get("sales") or {})
    evaluation = _evaluation_config(data.get("evaluation") or {})
    for section, source_id in (("sales", sales.source), ("evaluation", evaluation.source)):
        if source_id not in sources:
            raise ConfigError(f"{section}.source '{source_id}' is not defined in sources")
    return DashboardConfig(
        sources=sources,
        sales=sales,
        evaluation=evaluation,
        grants=_grant_configs(data.get("grants") or {}),
    )

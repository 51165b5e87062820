"""Core shared contracts and utilities."""

from usage_core.structured_logging import (
    configure_structured_logging,
    get_run_id,
    get_unit,
    phase_scope,
    set_run_id,
    unit_scope,
)
from usage_core.settings import (
    ConfigValidationError,
    get_config_section,
    load_yaml_config,
    reject_unknown_keys,
    resolve_bool,
    resolve_int,
    resolve_strict_config_validation,
)
from usage_core.run_artifacts import write_jsonl, write_run_report

__all__ = [
    "configure_structured_logging",
    "get_run_id",
    "get_unit",
    "phase_scope",
    "set_run_id",
    "unit_scope",
    "ConfigValidationError",
    "get_config_section",
    "load_yaml_config",
    "reject_unknown_keys",
    "resolve_bool",
    "resolve_int",
    "resolve_strict_config_validation",
    "write_jsonl",
    "write_run_report",
]

"""
Configuration for logging usage extraction.

Defines the logging-facade names each analyzer recognizes, the naming
conventions for synthesized parameters, and the run-level
``ErrorHandlingOptions``.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Set

from usage_core.settings import (
    get_config_section,
    load_yaml_config,
    reject_unknown_keys,
    resolve_bool,
    resolve_int,
)
from usage_extraction.models import LogLevel

logger = logging.getLogger(__name__)

# Extension methods whose name fixes the level
LEVEL_METHODS: Dict[str, LogLevel] = {
    "LogTrace": LogLevel.TRACE,
    "LogDebug": LogLevel.DEBUG,
    "LogInformation": LogLevel.INFORMATION,
    "LogWarning": LogLevel.WARNING,
    "LogError": LogLevel.ERROR,
    "LogCritical": LogLevel.CRITICAL,
}

# Direct log method taking the level as its leading argument
CORE_LOG_METHOD: str = "Log"

BEGIN_SCOPE_METHOD: str = "BeginScope"

# Static definer type and its methods
DEFINER_TYPE: str = "LoggerMessage"
DEFINE_METHODS: Set[str] = {"Define", "DefineScope"}

# Attribute marking source-generated logging methods (short name)
LOGGING_ATTRIBUTE: str = "LoggerMessage"

# Parameter attributes of source-generated logging methods (short names)
LOG_PROPERTIES_ATTRIBUTE: str = "LogProperties"
TAG_PROVIDER_ATTRIBUTE: str = "TagProvider"

# Receivers that stay inside the calling type
SELF_RECEIVERS: Set[str] = {"this", "base"}

# Simple names of types treated as logger instances
LOGGER_TYPE_NAMES: Set[str] = {"ILogger", "Logger"}

LOG_LEVEL_TYPE: str = "LogLevel"
EVENT_ID_TYPE: str = "EventId"
EXCEPTION_SUFFIX: str = "Exception"

# Template-bearing argument labels on the logging facade
MESSAGE_LABELS: Set[str] = {"message", "messageFormat", "formatString"}

# Sentinel for types that could not be resolved
UNKNOWN_TYPE: str = "unknown"

# Name given to a scope state that cannot be expanded
STATE_PLACEHOLDER_NAME: str = "State"

# Prefix of synthesized names for arguments beyond the template
EXCESS_ARGUMENT_PREFIX: str = "Arg"

# Element types that make a single array argument a params array
PARAMS_ARRAY_TYPES: Set[str] = {"object[]", "object?[]"}

DEFAULT_MAX_FAILURE_DETAILS: int = 100

_ERROR_HANDLING_KEYS: Set[str] = {
    "use_enhanced_error_handling",
    "log_extraction_failures",
    "continue_on_extraction_failure",
    "max_failure_details",
}


@dataclass(frozen=True)
class ErrorHandlingOptions:
    """Immutable error-handling configuration of an extraction run.

    Attributes:
        use_enhanced_error_handling: Record template syntax problems as failures
            instead of silently treating the template as literal text
        log_extraction_failures: Log every recorded failure at WARNING level
        continue_on_extraction_failure: Keep going after a failure; when False
            the first failure aborts the run
        max_failure_details: Cap on the failure details kept in statistics
    """

    use_enhanced_error_handling: bool = False
    log_extraction_failures: bool = True
    continue_on_extraction_failure: bool = True
    max_failure_details: int = DEFAULT_MAX_FAILURE_DETAILS


def load_error_handling_options(
    config_path: Optional[str] = None,
    strict: bool = False,
) -> ErrorHandlingOptions:
    """Build ``ErrorHandlingOptions`` from the ``error_handling`` YAML section.

    Args:
        config_path: YAML file to read, or None for defaults.
        strict: Raise ``ConfigValidationError`` on any problem instead of
            warning and falling back to defaults.

    Returns:
        The resolved options.
    """
    config = load_yaml_config(config_path, strict=strict)
    section = get_config_section(config, "error_handling", strict=strict)
    reject_unknown_keys(section, _ERROR_HANDLING_KEYS, "error_handling", strict=strict)

    defaults = ErrorHandlingOptions()
    options = ErrorHandlingOptions(
        use_enhanced_error_handling=resolve_bool(
            section,
            "use_enhanced_error_handling",
            defaults.use_enhanced_error_handling,
            strict=strict,
        ),
        log_extraction_failures=resolve_bool(
            section,
            "log_extraction_failures",
            defaults.log_extraction_failures,
            strict=strict,
        ),
        continue_on_extraction_failure=resolve_bool(
            section,
            "continue_on_extraction_failure",
            defaults.continue_on_extraction_failure,
            strict=strict,
        ),
        max_failure_details=resolve_int(
            section,
            "max_failure_details",
            defaults.max_failure_details,
            strict=strict,
        ),
    )
    logger.debug("Resolved error handling options: %s", options)
    return options

"""Config Loader - Loads processor configuration.

Handles loading YAML config files with environment variable substitution and
cross-checking the loaded settings before the first invocation.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from jsonpost.expression import placeholders
from jsonpost.models import ProcessorConfig
from jsonpost.request_builder import InvalidJsonError, InvalidUrlError, parse_url, validate_json


class ConfigError(Exception):
    """Raised when configuration loading fails."""


_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def load_config(config_path: Path) -> ProcessorConfig:
    """Load processor configuration from YAML with ${ENV_VAR} substitution."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must be a YAML mapping")

    # Substitute environment variables
    raw_config = _substitute_env_vars(raw_config)

    try:
        return ProcessorConfig.model_validate(raw_config)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid config structure: {e}") from e


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigError if env var is not set."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set")
        return value

    return _ENV_VAR_PATTERN.sub(replacer, s)


class ConfigSection(str, Enum):
    """Part of the configuration an issue refers to."""

    URL = "url"
    BODY = "body"
    TLS = "tls"


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ConfigIssue:
    """One finding from validate_config. Errors make the config unusable."""

    section: ConfigSection
    severity: Severity
    message: str

    def __str__(self) -> str:
        return f"[{self.section.value}] {self.message}"


@dataclass
class ConfigReport:
    """Issues found while cross-checking a loaded config, in check order."""

    issues: list[ConfigIssue] = field(default_factory=list)

    def warn(self, section: ConfigSection, message: str) -> None:
        self.issues.append(ConfigIssue(section, Severity.WARNING, message))

    def fail(self, section: ConfigSection, message: str) -> None:
        self.issues.append(ConfigIssue(section, Severity.ERROR, message))

    @property
    def warnings(self) -> list[ConfigIssue]:
        return [issue for issue in self.issues if issue.severity is Severity.WARNING]

    @property
    def errors(self) -> list[ConfigIssue]:
        return [issue for issue in self.issues if issue.severity is Severity.ERROR]

    @property
    def is_valid(self) -> bool:
        """True if no errors (warnings are OK)."""
        return not self.errors


def validate_config(config: ProcessorConfig) -> ConfigReport:
    """Cross-check templates and TLS settings before the first invocation.

    Templates with placeholders can only be fully checked per work item, so
    they are checked here only when they contain no placeholders.
    """
    report = ConfigReport()

    url_names = placeholders(config.url)
    if url_names:
        report.warn(
            ConfigSection.URL,
            f"URL template references attributes: {', '.join(url_names)}. "
            f"Items without them are sent with the placeholder unresolved."
        )
    else:
        try:
            parse_url(config.url.strip())
        except InvalidUrlError as e:
            report.fail(ConfigSection.URL, str(e))

    if config.body is None:
        report.warn(
            ConfigSection.BODY,
            "No body template configured. Every invocation will fail "
            "because the request body is empty."
        )
    elif not placeholders(config.body):
        try:
            validate_json(config.body.strip())
        except InvalidJsonError as e:
            report.fail(ConfigSection.BODY, str(e))

    if config.tls is not None and config.url.strip().lower().startswith("http://"):
        report.warn(
            ConfigSection.TLS,
            "TLS settings are configured but the URL uses http. "
            "They are only used for https URLs."
        )

    return report

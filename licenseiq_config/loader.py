"""
Settings Loader (``licenseiq_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into ``licenseiq_config.schema``
dataclasses.  Runtime callers go through
``licenseiq_config.get_active_settings()``; the parse functions are public
for tests and tooling.

Failure modes
-------------
* Missing file, malformed YAML, unknown keys or bad values raise
  ``ConfigurationError`` naming the offending file and key.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from licenseiq_config.schema import (
    AccessSettings,
    ImportSettings,
    LicenseIQSettings,
    LineageSettings,
)
from licenseiq_kernel.exceptions import ConfigurationError

_UNSCOPED_CHOICES = ("deny", "allow")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    An empty file yields an empty dict.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Settings file not found: {path}", str(path)) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}", str(path)) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings root must be a mapping: {path}", str(path))
    return data


def _check_keys(section: str, data: dict[str, Any], allowed: set[str]) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{section}': {', '.join(unknown)}")


def _role_set(section: str, key: str, value: Any) -> frozenset[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"'{section}.{key}' must be a list of role names")
    return frozenset(v.strip().lower() for v in value)


def _positive_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"'{section}.{key}' must be a positive integer")
    return value


def parse_access(data: dict[str, Any]) -> AccessSettings:
    _check_keys(
        "access",
        data,
        {"bypass_global_roles", "legacy_visible_roles", "edit_roles", "unscoped_assignment"},
    )
    defaults = AccessSettings()
    unscoped = data.get("unscoped_assignment", defaults.unscoped_assignment)
    if unscoped not in _UNSCOPED_CHOICES:
        raise ConfigurationError(
            f"'access.unscoped_assignment' must be one of {_UNSCOPED_CHOICES}"
        )
    return AccessSettings(
        bypass_global_roles=(
            _role_set("access", "bypass_global_roles", data["bypass_global_roles"])
            if "bypass_global_roles" in data
            else defaults.bypass_global_roles
        ),
        legacy_visible_roles=(
            _role_set("access", "legacy_visible_roles", data["legacy_visible_roles"])
            if "legacy_visible_roles" in data
            else defaults.legacy_visible_roles
        ),
        edit_roles=(
            _role_set("access", "edit_roles", data["edit_roles"])
            if "edit_roles" in data
            else defaults.edit_roles
        ),
        unscoped_assignment=unscoped,
    )


def parse_lineage(data: dict[str, Any]) -> LineageSettings:
    _check_keys("lineage", data, {"max_lineage_nodes"})
    if "max_lineage_nodes" not in data:
        return LineageSettings()
    return LineageSettings(
        max_lineage_nodes=_positive_int("lineage", "max_lineage_nodes", data["max_lineage_nodes"])
    )


def parse_imports(data: dict[str, Any]) -> ImportSettings:
    _check_keys("imports", data, {"max_rows_per_job", "allow_draft_dry_run"})
    defaults = ImportSettings()
    allow_draft = data.get("allow_draft_dry_run", defaults.allow_draft_dry_run)
    if not isinstance(allow_draft, bool):
        raise ConfigurationError("'imports.allow_draft_dry_run' must be a boolean")
    return ImportSettings(
        max_rows_per_job=(
            _positive_int("imports", "max_rows_per_job", data["max_rows_per_job"])
            if "max_rows_per_job" in data
            else defaults.max_rows_per_job
        ),
        allow_draft_dry_run=allow_draft,
    )


def parse_settings(data: dict[str, Any], source: str | None = None) -> LicenseIQSettings:
    """Parse a settings mapping (already loaded from YAML)."""
    _check_keys("root", data, {"database_url", "log_level", "access", "lineage", "imports"})
    defaults = LicenseIQSettings()

    log_level = str(data.get("log_level", defaults.log_level)).upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigurationError(f"'log_level' must be one of {_LOG_LEVELS}", source)

    for section in ("access", "lineage", "imports"):
        if section in data and not isinstance(data[section], dict):
            raise ConfigurationError(f"'{section}' must be a mapping", source)

    return LicenseIQSettings(
        database_url=data.get("database_url", defaults.database_url),
        log_level=log_level,
        access=parse_access(data.get("access", {})),
        lineage=parse_lineage(data.get("lineage", {})),
        imports=parse_imports(data.get("imports", {})),
        source=source,
    )


def load_settings(path: Path) -> LicenseIQSettings:
    """Load and parse one settings file."""
    return parse_settings(load_yaml_file(path), source=str(path))

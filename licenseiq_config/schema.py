"""
Settings schema (``licenseiq_config.schema``).

Frozen dataclasses for every configurable knob.  Defaults are the
production behaviour; a settings file only needs the keys it overrides.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///licenseiq.db"


@dataclass(frozen=True)
class AccessSettings:
    """Role sets and the fallback for assignments that name no org unit."""

    bypass_global_roles: frozenset[str] = frozenset({"admin", "owner"})
    legacy_visible_roles: frozenset[str] = frozenset({"admin", "owner"})
    edit_roles: frozenset[str] = frozenset({"admin", "owner", "company_admin"})
    unscoped_assignment: str = "deny"


@dataclass(frozen=True)
class LineageSettings:
    """Upper bound on versions visited while resolving one lineage."""

    max_lineage_nodes: int = 10_000


@dataclass(frozen=True)
class ImportSettings:
    max_rows_per_job: int = 100_000
    allow_draft_dry_run: bool = True


@dataclass(frozen=True)
class LicenseIQSettings:
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    access: AccessSettings = field(default_factory=AccessSettings)
    lineage: LineageSettings = field(default_factory=LineageSettings)
    imports: ImportSettings = field(default_factory=ImportSettings)
    source: str | None = None

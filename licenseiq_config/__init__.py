"""
licenseiq_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_active_settings()`` is the only way services obtain settings.  No
    other component reads settings files or environment variables.

Architecture position:
    Sits above ``licenseiq_kernel`` and below ``licenseiq_mapping`` /
    ``licenseiq_ingestion``.  The kernel MUST NEVER import from here;
    ``bridges`` translates settings into kernel policy objects.

Resolution order:
    1. ``LICENSEIQ_CONFIG`` names a YAML file; otherwise defaults apply.
    2. ``LICENSEIQ_DATABASE_URL`` overrides ``database_url``.
"""

from __future__ import annotations

import os
from dataclasses import replace
from functools import lru_cache
from pathlib import Path

from licenseiq_config.loader import load_settings, parse_settings
from licenseiq_config.schema import LicenseIQSettings
from licenseiq_kernel.logging_config import get_logger

logger = get_logger("config")

CONFIG_ENV_VAR = "LICENSEIQ_CONFIG"
DATABASE_URL_ENV_VAR = "LICENSEIQ_DATABASE_URL"

DEFAULT_SETTINGS_FILE = Path(__file__).parent / "sets" / "default.yaml"


@lru_cache(maxsize=1)
def get_active_settings() -> LicenseIQSettings:
    """The ONLY public settings entrypoint."""
    path = os.environ.get(CONFIG_ENV_VAR)
    settings = load_settings(Path(path)) if path else parse_settings({})

    db_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if db_url:
        settings = replace(settings, database_url=db_url)

    logger.info(
        "settings_loaded",
        extra={
            "source": settings.source or "defaults",
            "unscoped_assignment": settings.access.unscoped_assignment,
            "max_lineage_nodes": settings.lineage.max_lineage_nodes,
        },
    )
    return settings


def reset_active_settings() -> None:
    """Drop the cached settings. FOR TESTING ONLY."""
    get_active_settings.cache_clear()


__all__ = [
    "CONFIG_ENV_VAR",
    "DATABASE_URL_ENV_VAR",
    "DEFAULT_SETTINGS_FILE",
    "LicenseIQSettings",
    "get_active_settings",
    "reset_active_settings",
]

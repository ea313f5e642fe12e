"""
Config -> Kernel bridges.

The kernel never imports licenseiq_config; these functions translate
settings into the kernel's own policy objects.

Usage:
    settings = get_active_settings()
    policy = build_access_policy(settings)
    ScopedSelector(session, MappingVersionModel, policy)
"""

from __future__ import annotations

from licenseiq_config.schema import LicenseIQSettings
from licenseiq_kernel.domain.visibility import AccessPolicy, UnscopedAssignmentPolicy


def build_access_policy(settings: LicenseIQSettings) -> AccessPolicy:
    access = settings.access
    return AccessPolicy(
        bypass_global_roles=access.bypass_global_roles,
        legacy_visible_roles=access.legacy_visible_roles,
        edit_roles=access.edit_roles,
        unscoped_assignment=UnscopedAssignmentPolicy(access.unscoped_assignment),
    )

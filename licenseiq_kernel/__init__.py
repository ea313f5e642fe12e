"""
LicenseIQ kernel: tenancy enforcement shared by every LicenseIQ package.

- Org hierarchy (company / business unit / location) and role assignments
- Active context resolution and the org access filter
- Resource access validation (visibility vs. edit authority)
- Typed errors, structured logging, database session management
"""

__version__ = "0.1.0"

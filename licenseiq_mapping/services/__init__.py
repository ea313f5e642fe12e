"""Mapping services."""

from licenseiq_mapping.services.lineage_service import MappingLineageService

__all__ = ["MappingLineageService"]

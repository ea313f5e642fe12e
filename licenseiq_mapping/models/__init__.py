"""Mapping ORM models."""

from licenseiq_mapping.models.mapping import MappingVersionModel

__all__ = ["MappingVersionModel"]

from licenseiq_ingestion.mapping.engine import (
    CoercionResult,
    MappingResult,
    apply_mapping,
    apply_transform,
    coerce_value,
)

__all__ = [
    "CoercionResult",
    "MappingResult",
    "apply_mapping",
    "apply_transform",
    "coerce_value",
]

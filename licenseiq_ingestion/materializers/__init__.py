"""
Materializer registry.

Maps a mapping's target_entity to the RecordMaterializer that writes it.
Entities without a dedicated materializer use CanonicalRecordMaterializer.
"""

from licenseiq_ingestion.materializers.base import (
    CanonicalRecordMaterializer,
    RecordMaterializer,
)


class MaterializerRegistry:
    def __init__(
        self,
        materializers: dict[str, RecordMaterializer] | None = None,
        default: RecordMaterializer | None = None,
    ):
        self._materializers = dict(materializers or {})
        self._default = default or CanonicalRecordMaterializer()

    def register(self, target_entity: str, materializer: RecordMaterializer) -> None:
        self._materializers[target_entity] = materializer

    def get(self, target_entity: str) -> RecordMaterializer:
        return self._materializers.get(target_entity, self._default)


__all__ = [
    "CanonicalRecordMaterializer",
    "MaterializerRegistry",
    "RecordMaterializer",
]

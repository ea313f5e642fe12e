from licenseiq_ingestion.selectors.jobs import CanonicalRecordSelector, ImportJobSelector

__all__ = ["CanonicalRecordSelector", "ImportJobSelector"]

"""
ORM Registry (``licenseiq_ingestion._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy model is imported so that ``Base.metadata`` holds
all table definitions before tables are created.  Provides
``create_all_tables()``, the one entry point scripts and
``tests/conftest.py`` use to get a complete schema.

Architecture position
---------------------
Outermost layer.  Imports kernel, mapping and ingestion models.  MUST NOT be
imported by ``licenseiq_kernel`` or ``licenseiq_mapping``.
"""


def import_all_orm_models() -> None:
    """Import kernel, mapping and ingestion models. Idempotent."""
    # Kernel tables first (companies, users, contracts)
    import licenseiq_kernel.models  # noqa: F401
    import licenseiq_mapping.models  # noqa: F401
    import licenseiq_ingestion.models  # noqa: F401


def create_all_tables() -> None:
    """Create kernel, mapping and ingestion tables.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from licenseiq_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()

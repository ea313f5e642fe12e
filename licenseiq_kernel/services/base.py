"""
BaseService -- abstract base for LicenseIQ write services.

Services receive a SQLAlchemy ``Session`` from the caller and persist with
``session.flush()`` only.  The caller (request handler, session_scope(),
or the test harness) owns commit and rollback, so multi-step operations
such as stage-then-commit stay atomic.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from licenseiq_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for write services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()`` on the outer transaction; nested
          SAVEPOINTs it opens are its own.
    """

    def __init__(self, session: Session):
        self.session = session

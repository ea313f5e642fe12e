"""
Module: licenseiq_kernel.models.contract
Responsibility: ORM persistence for license contracts, the primary scoped
    business record guarded by services.access_validator.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - contract_number is unique (uq_contract_number).
    - created_by_id is the uploader; creators keep edit authority on their
      own contracts regardless of context role.
"""

from datetime import date
from enum import Enum

from sqlalchemy import Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from licenseiq_kernel.db.base import OrgScopedMixin, TrackedBase


class ContractStatus(str, Enum):
    UPLOADED = "uploaded"
    ANALYZED = "analyzed"
    ACTIVE = "active"
    EXPIRED = "expired"


class Contract(OrgScopedMixin, TrackedBase):
    """License agreement uploaded by a user into one org scope."""

    __tablename__ = "contracts"

    __table_args__ = (
        UniqueConstraint("contract_number", name="uq_contract_number"),
        Index("idx_contract_status", "status"),
    )

    contract_number: Mapped[str] = mapped_column(String(50), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    counterparty: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContractStatus.UPLOADED.value
    )
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)

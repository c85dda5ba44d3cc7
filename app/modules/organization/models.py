from app.database.database import Base
from app.common.mixins import OrganizationMixin, TimestampMixin
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(UUID(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class OrgRequisites(Base, OrganizationMixin, TimestampMixin):
    """
    Billing entity (legal name, tax ids, bank details) printed on invoices.

    An organization may invoice under several entities; one of them is the default.
    """
    __tablename__ = "org_requisites"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(300), nullable=False)
    short_name = Column(String(200), nullable=True)
    inn = Column(String(12), nullable=True)
    kpp = Column(String(9), nullable=True)
    bik = Column(String(9), nullable=True)
    bank_name = Column(String(300), nullable=True)
    settlement_account = Column(String(20), nullable=True)
    correspondent_account = Column(String(20), nullable=True)
    legal_address = Column(String(500), nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)

"""
Client (dental clinic / doctor practice) records referenced by payments,
invoices, orders and client-specific pricing.
"""
from app.database.database import Base
from app.common.mixins import OrganizationMixin, TimestampMixin
from sqlalchemy import Column, String, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4

from app.modules.organization.models import OrgRequisites


class Client(Base, OrganizationMixin, TimestampMixin):
    __tablename__ = "clients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(300), nullable=False)
    short_name = Column(String(200), nullable=True)
    legal_entity_name = Column(String(300), nullable=True)
    inn = Column(String(12), nullable=True)
    # Which of our billing entities invoices this client by default
    our_requisites_id = Column(UUID(as_uuid=True), ForeignKey("org_requisites.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    our_requisites = relationship(OrgRequisites)

from __future__ import annotations
from sqlalchemy.orm import declarative_base, relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, ForeignKey, UniqueConstraint, DateTime
from typing import Optional
from datetime import datetime
from robotcare.constants.permissions import Role, Capability, capability_of
from robotcare.utils.clock import utcnow

Base = declarative_base()

# --- Tenancy & identity ---
class Organization(Base):
    __tablename__ = 'organizations'
    TYPE_SERVICE_PROVIDER = 'service_provider'
    TYPE_END_CUSTOMER = 'end_customer'
    ALL_TYPES = (TYPE_SERVICE_PROVIDER, TYPE_END_CUSTOMER)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    contact_email: Mapped[Optional[str]] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    users = relationship('User', back_populates='organization')


class User(Base):
    __tablename__ = 'users'
    STATUS_ACTIVE = 'active'
    STATUS_PENDING = 'pending'
    STATUS_DISABLED = 'disabled'
    ALL_STATUSES = (STATUS_ACTIVE, STATUS_PENDING, STATUS_DISABLED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    organization = relationship('Organization', back_populates='users')

    @property
    def capability(self) -> Capability:
        return capability_of(Role(self.role))

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, raw)


class ServiceContract(Base):
    """Links a service provider to an end customer; only ``active`` contracts grant visibility."""
    __tablename__ = 'service_contracts'
    STATUS_ACTIVE = 'active'
    STATUS_TERMINATED = 'terminated'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_provider_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True)
    end_customer_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (UniqueConstraint('service_provider_id', 'end_customer_id', name='uq_contract_pair'),)

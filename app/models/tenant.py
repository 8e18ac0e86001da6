import enum
import uuid
from sqlalchemy import Column, String, DateTime, Enum, Uuid, func
from app.db.base_class import Base


class DomainStatus(str, enum.Enum):
    """Lifecycle of a tenant custom domain."""

    PENDING = "Pending"
    VERIFYING = "Verifying"
    SECURING = "Securing"
    LIVE = "Live"


class Tenant(Base):
    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    slug = Column(String(63), unique=True, nullable=False, index=True)  # /stores/<slug>
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # ── Custom domain ──
    domain = Column(String(253), nullable=True, unique=True, index=True)   # normalized apex domain
    domain_status = Column(
        Enum(DomainStatus, name="domain_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=DomainStatus.PENDING,
    )
    certificate_issued_at = Column(DateTime(timezone=True), nullable=True)  # set on entering Live

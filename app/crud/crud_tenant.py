"""Domain directory: tenant lookups and custom-domain status writes."""
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.tenant import DomainStatus, Tenant

logger = logging.getLogger("storefront.directory")


class DomainDirectoryError(Exception):
    """A directory write failed; the stored state is unchanged."""


class DomainTakenError(Exception):
    """The domain already belongs to another tenant."""


def get(db: Session, tenant_id: UUID) -> Optional[Tenant]:
    return db.query(Tenant).filter(Tenant.id == tenant_id).first()


def get_by_slug(db: Session, slug: str) -> Optional[Tenant]:
    return db.query(Tenant).filter(Tenant.slug == slug).first()


def get_by_domain(db: Session, domain: str) -> Optional[Tenant]:
    return db.query(Tenant).filter(Tenant.domain == domain).first()


def find_live_slug_by_domain(db: Session, domain: str) -> Optional[str]:
    """Slug of the tenant whose Live domain is ``domain`` (normalized form)."""
    if not domain:
        return None
    row = (
        db.query(Tenant.slug)
        .filter(
            Tenant.domain == domain,
            Tenant.domain_status == DomainStatus.LIVE,
        )
        .first()
    )
    return row[0] if row else None


def update_domain_status(
    db: Session,
    tenant_id: UUID,
    status: DomainStatus,
    *,
    domain: str,
    expected: Iterable[DomainStatus],
    certificate_issued_at: Optional[datetime] = None,
) -> bool:
    """Compare-and-set the domain status of one tenant row.

    The row is only written while it still holds ``domain`` and one of the
    ``expected`` statuses. Returns False when another writer got there first.
    ``certificate_issued_at`` is stamped on entry into Live and cleared otherwise.
    Raises DomainDirectoryError if the write itself fails.
    """
    values = {"domain_status": status, "certificate_issued_at": None}
    if status == DomainStatus.LIVE:
        values["certificate_issued_at"] = certificate_issued_at or datetime.now(timezone.utc)

    stmt = (
        update(Tenant)
        .where(
            Tenant.id == tenant_id,
            Tenant.domain == domain,
            Tenant.domain_status.in_(list(expected)),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Domain status write failed for tenant %s: %s", tenant_id, exc)
        raise DomainDirectoryError(f"Failed to update domain status for tenant {tenant_id}") from exc

    db.expire_all()
    return result.rowcount == 1


def set_domain(db: Session, *, db_obj: Tenant, domain: Optional[str]) -> Tenant:
    """Attach, replace or (with ``None``) remove a tenant's custom domain.

    Any change resets the lifecycle to Pending and clears the certificate timestamp.
    """
    if domain:
        owner = get_by_domain(db, domain)
        if owner is not None and owner.id != db_obj.id:
            raise DomainTakenError(domain)

    db_obj.domain = domain
    db_obj.domain_status = DomainStatus.PENDING
    db_obj.certificate_issued_at = None
    db.add(db_obj)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DomainTakenError(domain) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Domain save failed for tenant %s: %s", db_obj.id, exc)
        raise DomainDirectoryError(f"Failed to save domain for tenant {db_obj.id}") from exc
    db.refresh(db_obj)
    return db_obj

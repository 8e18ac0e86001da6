"""
Custom Domain Management API

Lets a store owner:
  1. Attach / replace / remove a custom domain
  2. Read the DNS records to configure at their registrar
  3. Check status (re-derives Pending → Verifying → Securing → Live)

Authentication is handled upstream by the identity provider.
"""
import logging
from typing import Any, Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api import deps
from app.config import settings
from app.crud import crud_tenant
from app.crud.crud_tenant import DomainDirectoryError, DomainTakenError
from app.models.tenant import Tenant
from app.schemas.custom_domain import (
    DNSRecord,
    DomainInfo,
    DomainLookupResult,
    DomainStatusResponse,
    DomainUpdate,
)
from app.services.domain_provisioning import (
    DomainNotConfiguredError,
    DomainProvisioningOrchestrator,
    TenantNotFoundError,
)
from app.services.domain_resolution import DomainLookupError, resolve_tenant_slug
from app.services.domain_utils import get_status_message, normalize_domain, validate_domain_format

router = APIRouter()
logger = logging.getLogger("storefront.custom_domain")


# ── Helpers ──

def _get_tenant_or_404(db: Session, tenant_id: UUID) -> Tenant:
    tenant = crud_tenant.get(db, tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Store not found")
    return tenant


def _dns_records() -> list[DNSRecord]:
    return [
        DNSRecord(type="A", name="@", value=settings.PLATFORM_INGRESS_IP),
        DNSRecord(type="CNAME", name="www", value=settings.DOMAIN_CNAME_TARGET),
    ]


def _domain_info(tenant: Tenant) -> DomainInfo:
    return DomainInfo(
        tenant_id=str(tenant.id),
        domain=tenant.domain,
        status=tenant.domain_status,
        message=get_status_message(tenant.domain_status),
        certificate_issued_at=tenant.certificate_issued_at,
        dns_records=_dns_records() if tenant.domain else [],
    )


def _store_domain(db: Session, tenant_id: UUID, raw: str) -> Tuple[DomainInfo, Optional[str], bool]:
    """Validate and write the tenant's domain; an empty value clears it.

    Returns the resulting info, the previous domain and whether anything was written.
    Runs in the threadpool: every call here is a blocking directory operation.
    """
    tenant = _get_tenant_or_404(db, tenant_id)
    previous = tenant.domain

    domain: Optional[str] = None
    if raw:
        validation = validate_domain_format(raw)
        if not validation.valid:
            raise HTTPException(status_code=400, detail=validation.reason)
        domain = normalize_domain(raw)
        if previous == domain:
            return _domain_info(tenant), previous, False

    try:
        tenant = crud_tenant.set_domain(db, db_obj=tenant, domain=domain)
    except DomainTakenError:
        raise HTTPException(status_code=409, detail="This domain is already connected to another store")
    except DomainDirectoryError:
        detail = "Failed to save domain" if domain else "Failed to remove domain"
        raise HTTPException(status_code=500, detail=detail)
    return _domain_info(tenant), previous, True


def _after_domain_change(
    orchestrator: DomainProvisioningOrchestrator,
    tenant_id: UUID,
    domain: Optional[str],
    previous: Optional[str],
) -> None:
    if domain:
        orchestrator.cache.invalidate(domain)
    if previous and previous != domain:
        orchestrator.release_domain(previous)
    if domain:
        logger.info("Custom domain set: %s for tenant %s (was %s)", domain, tenant_id, previous)
    elif previous:
        logger.info("Custom domain removed: %s for tenant %s", previous, tenant_id)


# ── Endpoints ──

@router.get("/tenants/{tenant_id}/domain", response_model=DomainInfo)
def get_domain(
    tenant_id: UUID,
    db: Session = Depends(deps.get_db),
) -> Any:
    """Current custom domain, status and the DNS records to configure."""
    return _domain_info(_get_tenant_or_404(db, tenant_id))


@router.put("/tenants/{tenant_id}/domain", response_model=DomainInfo)
async def save_domain(
    tenant_id: UUID,
    body: DomainUpdate,
    db: Session = Depends(deps.get_db),
    orchestrator: DomainProvisioningOrchestrator = Depends(deps.get_orchestrator),
) -> Any:
    """Attach or replace the store's custom domain; an empty value removes it."""
    raw = (body.domain or "").strip()
    info, previous, changed = await run_in_threadpool(_store_domain, db, tenant_id, raw)
    if changed:
        _after_domain_change(orchestrator, tenant_id, info.domain, previous)
    return info


@router.delete("/tenants/{tenant_id}/domain", response_model=DomainInfo)
async def remove_domain(
    tenant_id: UUID,
    db: Session = Depends(deps.get_db),
    orchestrator: DomainProvisioningOrchestrator = Depends(deps.get_orchestrator),
) -> Any:
    """Disconnect the custom domain; status resets to Pending."""
    info, previous, _ = await run_in_threadpool(_store_domain, db, tenant_id, "")
    _after_domain_change(orchestrator, tenant_id, None, previous)
    return info


@router.post("/tenants/{tenant_id}/domain/check-status", response_model=DomainStatusResponse)
async def check_domain_status(
    tenant_id: UUID,
    db: Session = Depends(deps.get_db),
    orchestrator: DomainProvisioningOrchestrator = Depends(deps.get_orchestrator),
) -> Any:
    """Re-check DNS / TLS / reachability and advance the domain lifecycle."""
    try:
        report = await orchestrator.check_status(db, tenant_id)
    except TenantNotFoundError:
        raise HTTPException(status_code=404, detail="Store not found")
    except DomainNotConfiguredError:
        raise HTTPException(status_code=400, detail="No domain configured for this store")
    except DomainDirectoryError:
        raise HTTPException(status_code=500, detail="Failed to check domain status")

    return DomainStatusResponse(
        status=report.status,
        domain=report.domain,
        verified=report.verified,
        message=report.message,
        certificate_issued_at=report.certificate_issued_at,
    )


@router.get("/domains/lookup", response_model=DomainLookupResult)
async def lookup_domain(hostname: str = Query(..., min_length=1)) -> Any:
    """Store slug serving a hostname on a Live domain (null when none)."""
    try:
        slug = await resolve_tenant_slug(hostname)
    except DomainLookupError as e:
        logger.error("Domain lookup failed for %s: %s", hostname, e)
        slug = None
    return DomainLookupResult(slug=slug)

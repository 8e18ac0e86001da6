"""
Custom Domain Provisioning

Drives a tenant domain through Pending → Verifying → Securing → Live.

There is no scheduler: every status check re-derives the state from live
signals (HTTPS probe, DNS) and writes the result with a compare-and-set, so
the stored status is the last known state rather than the source of truth.

  Live       probe ok                      → Live (no write)
  Live       probe fails                   → re-check DNS below
  *          DNS not pointed               → Verifying
  Pending /
  Verifying  DNS pointed                   → Securing + one background registration
  Securing   DNS pointed, probe ok         → Live (stamp certificate_issued_at)
  Securing   DNS pointed, probe fails      → Securing; registration re-sent only if
                                             the provider does not know the domain
  Live       probe failed, DNS pointed     → Live (never downgraded on a probe alone)

Registration with the hosting provider runs as a background task; its
result is only visible to a later check. External check failures map to
"not yet" states. Only directory write failures reach the caller.

Directory reads and writes use a sync Session and run in the threadpool;
only the DNS lookup and the HTTPS probe are awaited on the event loop.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Set
from uuid import UUID

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.crud import crud_tenant
from app.db.session import SessionLocal
from app.middleware.metrics import DOMAIN_TRANSITIONS
from app.models.tenant import DomainStatus, Tenant
from app.services.certificate_provisioner import HostingCertificateProvisioner
from app.services.dns_verifier import DNSVerifier
from app.services.domain_cache import DomainResolutionCache, domain_cache
from app.services.domain_utils import LIVE_UNREACHABLE_MESSAGE, get_status_message
from app.services.liveness import LivenessProber

logger = logging.getLogger("storefront.provisioning")


class TenantNotFoundError(Exception):
    pass


class DomainNotConfiguredError(Exception):
    pass


@dataclass
class DomainStatusReport:
    status: DomainStatus
    domain: str
    verified: bool
    message: str
    certificate_issued_at: Optional[datetime] = None


class DomainProvisioningOrchestrator:
    def __init__(
        self,
        dns_verifier: Optional[DNSVerifier] = None,
        prober: Optional[LivenessProber] = None,
        provisioner: Optional[HostingCertificateProvisioner] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        cache: DomainResolutionCache = domain_cache,
    ):
        self.dns_verifier = dns_verifier or DNSVerifier()
        self.prober = prober or LivenessProber()
        self.provisioner = provisioner or HostingCertificateProvisioner()
        self.session_factory = session_factory
        self.cache = cache
        self._background: Set[asyncio.Task] = set()

    # ── Status check ──

    async def check_status(self, db: Session, tenant_id: UUID) -> DomainStatusReport:
        tenant = await run_in_threadpool(crud_tenant.get, db, tenant_id)
        if tenant is None:
            raise TenantNotFoundError(str(tenant_id))
        if not tenant.domain:
            raise DomainNotConfiguredError(str(tenant_id))

        domain = tenant.domain
        current = tenant.domain_status

        if current == DomainStatus.LIVE:
            if await self.prober.is_accessible(domain):
                return self._report(tenant)
            logger.warning("Domain %s marked Live but not accessible, re-checking DNS", domain)

        if not await self.dns_verifier.points_to_platform(domain):
            if current != DomainStatus.VERIFYING:
                await self._transition(db, tenant_id, domain, current, DomainStatus.VERIFYING)
            return await self._reload_report(db, tenant_id)

        if current in (DomainStatus.PENDING, DomainStatus.VERIFYING):
            if await self._transition(db, tenant_id, domain, current, DomainStatus.SECURING):
                self._dispatch(self._register_and_promote(tenant_id, domain))
            return await self._reload_report(db, tenant_id)

        if current == DomainStatus.SECURING:
            if await self.prober.is_accessible(domain):
                await self._transition(db, tenant_id, domain, current, DomainStatus.LIVE)
            else:
                self._dispatch(self._ensure_registered(tenant_id, domain))
            return await self._reload_report(db, tenant_id)

        # Live, DNS still pointed, probe failed: keep serving
        report = self._report(tenant)
        report.message = LIVE_UNREACHABLE_MESSAGE
        return report

    async def _transition(
        self,
        db: Session,
        tenant_id: UUID,
        domain: str,
        from_status: DomainStatus,
        to_status: DomainStatus,
    ) -> bool:
        changed = await run_in_threadpool(
            crud_tenant.update_domain_status,
            db,
            tenant_id,
            to_status,
            domain=domain,
            expected=[from_status],
        )
        if not changed:
            logger.info(
                "Skipped %s → %s for %s: status changed concurrently",
                from_status.value, to_status.value, domain,
            )
            return False

        DOMAIN_TRANSITIONS.labels(from_status=from_status.value, to_status=to_status.value).inc()
        logger.info("Domain %s: %s → %s", domain, from_status.value, to_status.value)
        if DomainStatus.LIVE in (from_status, to_status):
            self.cache.invalidate(domain)
        return True

    async def _reload_report(self, db: Session, tenant_id: UUID) -> DomainStatusReport:
        tenant = await run_in_threadpool(crud_tenant.get, db, tenant_id)
        if tenant is None or not tenant.domain:
            raise DomainNotConfiguredError(str(tenant_id))
        return self._report(tenant)

    @staticmethod
    def _report(tenant: Tenant) -> DomainStatusReport:
        status = tenant.domain_status
        return DomainStatusReport(
            status=status,
            domain=tenant.domain,
            verified=status in (DomainStatus.SECURING, DomainStatus.LIVE),
            message=get_status_message(status),
            certificate_issued_at=tenant.certificate_issued_at if status == DomainStatus.LIVE else None,
        )

    # ── Background work ──

    def _dispatch(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _ensure_registered(self, tenant_id: UUID, domain: str) -> None:
        """Re-send the registration only when the provider has no record of the domain."""
        try:
            existing = await self.provisioner.get_registration(domain)
        except Exception:
            logger.exception("Exception querying registration for %s", domain)
            existing = None

        if existing is not None and existing.success:
            logger.info("Domain %s already registered with hosting provider, waiting for TLS", domain)
            return

        if existing is not None:
            logger.info("Registration lookup for %s failed (%s), registering again", domain, existing.error)
        await self._register_and_promote(tenant_id, domain)

    async def _register_and_promote(self, tenant_id: UUID, domain: str) -> None:
        try:
            result = await self.provisioner.register(domain)
            if not result.success:
                logger.warning("Registering %s with hosting provider failed: %s", domain, result.error)
                return

            db = self.session_factory()
            try:
                await self._transition(
                    db, tenant_id, domain, DomainStatus.SECURING, DomainStatus.LIVE,
                )
            finally:
                await run_in_threadpool(db.close)
        except Exception:
            logger.exception("Exception registering domain %s", domain)

    async def _release(self, domain: str) -> None:
        try:
            result = await self.provisioner.remove(domain)
            if not result.success:
                logger.warning("Releasing %s from hosting provider failed: %s", domain, result.error)
        except Exception:
            logger.exception("Exception releasing domain %s", domain)

    def release_domain(self, domain: str) -> None:
        """Drop a domain the tenant no longer uses from the hosting provider."""
        self.cache.invalidate(domain)
        self._dispatch(self._release(domain))

    @property
    def pending_tasks(self) -> int:
        return len(self._background)

    async def wait_for_background(self) -> None:
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)


provisioning_orchestrator = DomainProvisioningOrchestrator()

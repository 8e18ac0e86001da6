"""Resolve an inbound host to a tenant slug via the cache, then the directory."""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from app.crud import crud_tenant
from app.db.session import SessionLocal
from app.middleware.metrics import DOMAIN_RESOLUTIONS
from app.services.domain_cache import MISS, NOT_FOUND, DomainResolutionCache, domain_cache
from app.services.domain_utils import normalize_domain

logger = logging.getLogger("storefront.domain_resolution")


class DomainLookupError(Exception):
    """The directory could not be queried."""


def _lookup_live_slug(normalized: str) -> Optional[str]:
    # Stored domains are normalized on save, so the canonical form is the only key
    db = SessionLocal()
    try:
        return crud_tenant.find_live_slug_by_domain(db, normalized)
    finally:
        db.close()


async def resolve_tenant_slug(
    host: str,
    cache: DomainResolutionCache = domain_cache,
) -> Optional[str]:
    """Slug of the tenant serving ``host`` on a Live domain, or None.

    Directory results, including misses, are cached. A directory failure raises
    DomainLookupError and is not cached.
    """
    normalized = normalize_domain(host)
    if not normalized:
        return None

    cached = cache.get(normalized)
    if cached is NOT_FOUND:
        DOMAIN_RESOLUTIONS.labels(outcome="cache_negative").inc()
        return None
    if cached is not MISS:
        DOMAIN_RESOLUTIONS.labels(outcome="cache_hit").inc()
        return cached

    try:
        slug = await run_in_threadpool(_lookup_live_slug, normalized)
    except SQLAlchemyError as exc:
        DOMAIN_RESOLUTIONS.labels(outcome="error").inc()
        raise DomainLookupError(f"Directory lookup failed for {normalized}") from exc

    cache.set(normalized, slug)
    if slug:
        DOMAIN_RESOLUTIONS.labels(outcome="directory_hit").inc()
        logger.debug("Resolved custom domain %s → store %s", normalized, slug)
    else:
        DOMAIN_RESOLUTIONS.labels(outcome="directory_miss").inc()
        logger.debug("No Live store for custom domain %s", normalized)
    return slug

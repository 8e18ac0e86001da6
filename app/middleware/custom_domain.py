"""
Custom Domain Routing Middleware

Classifies every request by its Host header:
  - static assets bypass classification entirely
  - platform hosts pass through to the core app unchanged
  - any other host is a tenant custom domain: resolved to a store slug and
    rewritten in place to /<namespace>/<slug><path> (query and Host untouched)
  - an unrecognized custom domain gets a 404, never platform content
"""

import logging
import posixpath
from typing import Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings
from app.logging_config import host_ctx, tenant_ctx
from app.middleware.metrics import DOMAIN_RESOLUTIONS
from app.services.domain_resolution import DomainLookupError, resolve_tenant_slug
from app.services.domain_utils import strip_port

logger = logging.getLogger("storefront.middleware.custom_domain")


def is_static_asset(path: str, bypass_prefixes: Iterable[str]) -> bool:
    if any(path.startswith(prefix) for prefix in bypass_prefixes):
        return True
    last_segment = path.rsplit("/", 1)[-1]
    return bool(posixpath.splitext(last_segment)[1])


def build_rewrite_path(namespace: str, slug: str, path: str) -> str:
    rewritten = f"/{namespace}/{slug}"
    if path and path != "/":
        rewritten += path
    return rewritten


class CustomDomainMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        platform_hosts: Optional[Iterable[str]] = None,
        namespace: Optional[str] = None,
        bypass_prefixes: Optional[Iterable[str]] = None,
    ):
        super().__init__(app)
        hosts = platform_hosts if platform_hosts is not None else settings.platform_hosts
        self.platform_hosts = {strip_port(h) for h in hosts}
        self.namespace = (namespace or settings.TENANT_NAMESPACE).strip("/")
        self.bypass_prefixes = tuple(
            bypass_prefixes if bypass_prefixes is not None else settings.router_bypass_prefixes
        )

    def is_platform_host(self, host: str) -> bool:
        return strip_port(host) in self.platform_hosts

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        if is_static_asset(path, self.bypass_prefixes):
            return await call_next(request)

        host = request.headers.get("host", "")
        if self.is_platform_host(host):
            DOMAIN_RESOLUTIONS.labels(outcome="platform").inc()
            return await call_next(request)

        host_ctx.set(strip_port(host))
        try:
            slug = await resolve_tenant_slug(host)
        except DomainLookupError as e:
            logger.warning("Custom domain resolution failed for %s: %s", host, e)
            slug = None

        if not slug:
            logger.info("No store found for hostname %s, returning 404", host)
            return JSONResponse(
                status_code=404,
                content={"detail": "No storefront is configured for this domain"},
            )

        rewritten = build_rewrite_path(self.namespace, slug, path)
        tenant_ctx.set(slug)
        request.state.tenant_slug = slug
        request.state.custom_domain = strip_port(host)

        # Rewrite in place: downstream routing reads the same scope dict
        request.scope["path"] = rewritten
        raw_path = request.scope.get("raw_path") or path.encode("utf-8")
        prefix = build_rewrite_path(self.namespace, slug, "/").encode("utf-8")
        request.scope["raw_path"] = prefix + (raw_path if raw_path != b"/" else b"")
        logger.debug("Rewriting %s%s → %s", host, path, rewritten)

        return await call_next(request)

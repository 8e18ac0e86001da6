"""
Custom domain routing tests
Host classification, rewrite into the store namespace, 404 for unknown domains
"""
import pytest
from httpx import AsyncClient

from app.models.tenant import DomainStatus
from app.services.domain_cache import NOT_FOUND, domain_cache
from tests.conftest import create_tenant


@pytest.mark.asyncio
async def test_platform_host_is_not_rewritten(client: AsyncClient, db):
    create_tenant(db, "acme", domain="shop.example.com", status=DomainStatus.LIVE)

    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"

    resp = await client.get("/health", headers={"host": "localhost:8000"})
    assert resp.status_code == 200
    assert len(domain_cache) == 0


@pytest.mark.asyncio
async def test_platform_host_serves_store_namespace_directly(client: AsyncClient, db):
    create_tenant(db, "acme")
    resp = await client.get("/stores/acme/about")
    assert resp.status_code == 200
    body = resp.json()
    assert body["store"] == "acme"
    assert body["path"] == "/about"
    assert body["custom_domain"] is None


@pytest.mark.asyncio
async def test_unknown_custom_domain_returns_404(client: AsyncClient):
    resp = await client.get("/", headers={"host": "unknown-shop.com"})
    assert resp.status_code == 404
    assert resp.json()["detail"] == "No storefront is configured for this domain"
    assert domain_cache.get("unknown-shop.com") is NOT_FOUND


@pytest.mark.asyncio
async def test_live_custom_domain_rewrites_path_and_query(client: AsyncClient, db):
    create_tenant(db, "acme", domain="shop.example.com", status=DomainStatus.LIVE)

    resp = await client.get("/about?x=1", headers={"host": "shop.example.com"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["store"] == "acme"
    assert body["path"] == "/about"
    assert body["query"] == "x=1"
    assert body["host"] == "shop.example.com"
    assert body["custom_domain"] == "shop.example.com"
    assert "location" not in resp.headers


@pytest.mark.asyncio
async def test_root_path_rewrites_to_store_home(client: AsyncClient, db):
    create_tenant(db, "acme", domain="shop.example.com", status=DomainStatus.LIVE)
    resp = await client.get("/", headers={"host": "shop.example.com"})
    assert resp.status_code == 200
    assert resp.json()["path"] == "/"


@pytest.mark.asyncio
async def test_www_host_port_and_case_resolve_to_same_store(client: AsyncClient, db):
    create_tenant(db, "acme", domain="shop.example.com", status=DomainStatus.LIVE)
    resp = await client.get("/cart", headers={"host": "WWW.Shop.Example.com:443"})
    assert resp.status_code == 200
    assert resp.json()["store"] == "acme"


@pytest.mark.asyncio
async def test_host_variants_share_one_cache_entry(client: AsyncClient, db):
    create_tenant(db, "acme", domain="shop.example.com", status=DomainStatus.LIVE)
    for host in ("shop.example.com", "www.shop.example.com", "SHOP.example.com:8080"):
        resp = await client.get("/", headers={"host": host})
        assert resp.json()["store"] == "acme"
    assert len(domain_cache) == 1


@pytest.mark.asyncio
async def test_non_live_domain_is_not_routed(client: AsyncClient, db):
    create_tenant(db, "acme", domain="shop.example.com", status=DomainStatus.SECURING)
    resp = await client.get("/", headers={"host": "shop.example.com"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_resolution_is_served_from_cache(client: AsyncClient, db):
    tenant = create_tenant(db, "acme", domain="shop.example.com", status=DomainStatus.LIVE)
    assert (await client.get("/", headers={"host": "shop.example.com"})).status_code == 200
    assert domain_cache.get("shop.example.com") == "acme"

    # Directory change is invisible until the entry expires or is invalidated
    tenant.domain_status = DomainStatus.VERIFYING
    db.commit()
    assert (await client.get("/", headers={"host": "shop.example.com"})).status_code == 200

    domain_cache.invalidate("shop.example.com")
    assert (await client.get("/", headers={"host": "shop.example.com"})).status_code == 404


@pytest.mark.asyncio
async def test_static_assets_bypass_host_classification(client: AsyncClient):
    resp = await client.get("/favicon.ico", headers={"host": "unknown-shop.com"})
    # Reaches the app unrewritten: plain route 404, not the custom-domain 404
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Not Found"

    resp = await client.get("/static/app", headers={"host": "unknown-shop.com"})
    assert resp.json()["detail"] == "Not Found"
    assert len(domain_cache) == 0


@pytest.mark.asyncio
async def test_lookup_endpoint_uses_same_resolution(client: AsyncClient, db):
    create_tenant(db, "acme", domain="shop.example.com", status=DomainStatus.LIVE)

    resp = await client.get("/api/v1/domains/lookup", params={"hostname": "www.shop.example.com"})
    assert resp.status_code == 200
    assert resp.json() == {"slug": "acme"}

    resp = await client.get("/api/v1/domains/lookup", params={"hostname": "nobody.com"})
    assert resp.json() == {"slug": None}


@pytest.mark.asyncio
async def test_response_carries_request_id(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.headers.get("X-Request-ID")

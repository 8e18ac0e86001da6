"""
Tenant storefront namespace (/stores/{slug}/...)

Destination of custom-domain rewrites. Page rendering lives in the
storefront frontend; this returns what would be rendered for the request.
"""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.api import deps
from app.crud import crud_tenant

router = APIRouter()


def _storefront_payload(request: Request, slug: str, page_path: str, db: Session) -> dict:
    tenant = crud_tenant.get_by_slug(db, slug)
    if not tenant:
        raise HTTPException(status_code=404, detail="Store not found")
    return {
        "store": tenant.slug,
        "name": tenant.name,
        "path": "/" + page_path,
        "query": request.url.query,
        "host": request.headers.get("host", ""),
        "custom_domain": getattr(request.state, "custom_domain", None),
    }


@router.get("/{slug}")
def store_home(slug: str, request: Request, db: Session = Depends(deps.get_db)) -> Any:
    return _storefront_payload(request, slug, "", db)


@router.get("/{slug}/{page_path:path}")
def store_page(slug: str, page_path: str, request: Request, db: Session = Depends(deps.get_db)) -> Any:
    return _storefront_payload(request, slug, page_path, db)

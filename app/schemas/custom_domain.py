from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel

from app.models.tenant import DomainStatus


class DomainUpdate(BaseModel):
    domain: Optional[str] = None  # empty / null removes the domain


class DNSRecord(BaseModel):
    type: str   # A, CNAME
    name: str   # @, www
    value: str


class DomainInfo(BaseModel):
    tenant_id: str
    domain: Optional[str] = None
    status: DomainStatus
    message: str
    certificate_issued_at: Optional[datetime] = None
    dns_records: List[DNSRecord] = []


class DomainStatusResponse(BaseModel):
    status: DomainStatus
    domain: str
    verified: bool
    message: str
    certificate_issued_at: Optional[datetime] = None


class DomainLookupResult(BaseModel):
    slug: Optional[str] = None

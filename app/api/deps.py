from typing import Generator

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.services.domain_provisioning import DomainProvisioningOrchestrator, provisioning_orchestrator


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_orchestrator() -> DomainProvisioningOrchestrator:
    return provisioning_orchestrator

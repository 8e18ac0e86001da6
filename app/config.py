from typing import List, Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Placeholder ingress address (must never be used in production) ──
_PLACEHOLDER_INGRESS_IPS = {"", "0.0.0.0", "127.0.0.1"}


class Settings(BaseSettings):
    APP_NAME: str = "Storefront Domains"
    APP_ENV: str = "development"
    API_V1_STR: str = "/api/v1"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "storefront"
    DATABASE_URL: str = ""  # overrides POSTGRES_* when set (e.g. sqlite:// in tests)

    # Platform routing
    PLATFORM_INGRESS_IP: str = "216.24.57.1"          # A record target for tenant domains
    PLATFORM_HOSTS: str = "localhost,127.0.0.1"       # hosts that serve the core app
    DOMAIN_CNAME_TARGET: str = "storefront.onrender.com"  # CNAME target for www.
    TENANT_NAMESPACE: str = "stores"
    ROUTER_BYPASS_PREFIXES: str = "/static/,/assets/,/_next/"

    # Resolution cache
    DOMAIN_CACHE_TTL_SECONDS: float = 60.0
    DOMAIN_CACHE_NEGATIVE_TTL_SECONDS: float = 60.0
    DOMAIN_CACHE_MAX_ENTRIES: int = 200

    # External checks
    DNS_LOOKUP_TIMEOUT_SECONDS: Optional[float] = None  # None = resolver default
    LIVENESS_PROBE_TIMEOUT_SECONDS: float = 10.0

    # Hosting provider (custom domain + TLS issuance)
    CERT_PROVIDER_API_BASE: str = "https://api.render.com/v1"
    CERT_PROVIDER_API_KEY: str = ""
    CERT_PROVIDER_SERVICE_ID: str = ""
    CERT_PROVIDER_TIMEOUT_SECONDS: float = 15.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @model_validator(mode="after")
    def _validate_domain_settings(self) -> "Settings":
        """Reject cache and ingress settings that would serve stale or wrong routes."""
        if self.DOMAIN_CACHE_NEGATIVE_TTL_SECONDS > self.DOMAIN_CACHE_TTL_SECONDS:
            raise ValueError(
                "DOMAIN_CACHE_NEGATIVE_TTL_SECONDS must not exceed DOMAIN_CACHE_TTL_SECONDS; "
                "a long-lived 'not found' entry hides domains that just went live."
            )
        if self.DOMAIN_CACHE_MAX_ENTRIES < 1:
            raise ValueError("DOMAIN_CACHE_MAX_ENTRIES must be at least 1")
        if self.APP_ENV in ("production", "staging"):
            if self.PLATFORM_INGRESS_IP in _PLACEHOLDER_INGRESS_IPS:
                raise ValueError(
                    f"PLATFORM_INGRESS_IP is set to '{self.PLATFORM_INGRESS_IP}'. "
                    "Set the published ingress address in .env or environment."
                )
        return self

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"
        )

    @property
    def platform_hosts(self) -> List[str]:
        return [h.strip().lower() for h in self.PLATFORM_HOSTS.split(",") if h.strip()]

    @property
    def router_bypass_prefixes(self) -> List[str]:
        return [p.strip() for p in self.ROUTER_BYPASS_PREFIXES.split(",") if p.strip()]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_staging(self) -> bool:
        return self.APP_ENV == "staging"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

settings = Settings()

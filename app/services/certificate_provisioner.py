import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.config import settings

logger = logging.getLogger("storefront.cert_provider")


@dataclass
class ProvisionResult:
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class HostingCertificateProvisioner:
    """
    Hosting provider custom-domain API client.

    Registering a domain with the provider makes it start TLS certificate
    issuance for that domain. Every call returns a ProvisionResult; transport
    and API failures never raise.
    """

    def __init__(
        self,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        service_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = (api_base or settings.CERT_PROVIDER_API_BASE).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.CERT_PROVIDER_API_KEY
        self.service_id = service_id if service_id is not None else settings.CERT_PROVIDER_SERVICE_ID
        self.timeout = timeout if timeout is not None else settings.CERT_PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.service_id)

    def _domains_url(self, domain: Optional[str] = None) -> str:
        url = f"{self.api_base}/services/{self.service_id}/custom-domains"
        if domain:
            url += f"/{quote(domain, safe='')}"
        return url

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.request(method, url, headers=headers, **kwargs)

    @staticmethod
    def _json_or_none(response: httpx.Response) -> Optional[Dict[str, Any]]:
        try:
            return response.json()
        except ValueError:
            return None

    @staticmethod
    def _error_message(response: httpx.Response, action: str) -> str:
        body = HostingCertificateProvisioner._json_or_none(response)
        message = body.get("message") if isinstance(body, dict) else None
        return message or f"Failed to {action} ({response.status_code})"

    async def register(self, domain: str) -> ProvisionResult:
        """Add the domain to the hosted service; the provider then issues TLS."""
        if not self.is_configured:
            logger.error("Hosting provider API key or service id is not set")
            return ProvisionResult(success=False, error="Hosting provider API not configured")

        logger.info("Registering domain %s with service %s", domain, self.service_id)
        try:
            response = await self._request("POST", self._domains_url(), json={"name": domain})
        except httpx.HTTPError as e:
            logger.error("Exception while registering domain %s: %s", domain, e)
            return ProvisionResult(success=False, error=str(e))

        if response.is_error:
            error = self._error_message(response, "add domain")
            logger.error("Error registering domain %s: %s", domain, error)
            return ProvisionResult(success=False, error=error)

        logger.info("Domain %s registered with hosting provider", domain)
        return ProvisionResult(success=True, data=self._json_or_none(response))

    async def get_registration(self, domain: str) -> ProvisionResult:
        if not self.is_configured:
            return ProvisionResult(success=False, error="Hosting provider API not configured")

        try:
            response = await self._request("GET", self._domains_url(domain))
        except httpx.HTTPError as e:
            logger.error("Exception while fetching domain %s: %s", domain, e)
            return ProvisionResult(success=False, error=str(e))

        if response.status_code == 404:
            return ProvisionResult(success=False, error="Domain not found on hosting provider")
        if response.is_error:
            return ProvisionResult(success=False, error=self._error_message(response, "get domain"))
        return ProvisionResult(success=True, data=self._json_or_none(response))

    async def remove(self, domain: str) -> ProvisionResult:
        if not self.is_configured:
            return ProvisionResult(success=False, error="Hosting provider API not configured")

        logger.info("Removing domain %s from hosting provider", domain)
        try:
            response = await self._request("DELETE", self._domains_url(domain))
        except httpx.HTTPError as e:
            logger.error("Exception while removing domain %s: %s", domain, e)
            return ProvisionResult(success=False, error=str(e))

        if response.is_error and response.status_code != 404:
            error = self._error_message(response, "remove domain")
            logger.error("Error removing domain %s: %s", domain, error)
            return ProvisionResult(success=False, error=error)
        return ProvisionResult(success=True)

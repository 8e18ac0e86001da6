import logging
from typing import Optional

import httpx

from app.config import settings

logger = logging.getLogger("storefront.liveness")


class LivenessProber:
    """HEAD https://<domain> to confirm the storefront is publicly reachable."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.LIVENESS_PROBE_TIMEOUT_SECONDS
        self._transport = transport

    async def is_accessible(self, domain: str) -> bool:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.head(f"https://{domain}")
        except httpx.HTTPError as e:
            logger.info("Domain %s is not accessible: %s", domain, e)
            return False

        accessible = 200 <= response.status_code < 400
        if accessible:
            logger.info("Domain %s is accessible (HTTP %d)", domain, response.status_code)
        else:
            logger.info("Domain %s returned HTTP %d", domain, response.status_code)
        return accessible

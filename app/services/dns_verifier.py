import logging
from typing import Optional

import dns.asyncresolver
import dns.exception

from app.config import settings

logger = logging.getLogger("storefront.dns")


class DNSVerifier:
    """
    Checks whether a tenant domain's A records point at the platform ingress.

    Lookup failures (NXDOMAIN, no answer, timeout, resolver errors) mean
    "not pointed yet": during propagation that is the expected answer, so it
    is logged and reported as False rather than raised.
    """

    def __init__(
        self,
        ingress_ip: Optional[str] = None,
        resolver: Optional[dns.asyncresolver.Resolver] = None,
        lifetime: Optional[float] = None,
    ):
        self.ingress_ip = ingress_ip or settings.PLATFORM_INGRESS_IP
        self.lifetime = lifetime if lifetime is not None else settings.DNS_LOOKUP_TIMEOUT_SECONDS
        self._resolver = resolver

    def _get_resolver(self) -> dns.asyncresolver.Resolver:
        if self._resolver is None:
            self._resolver = dns.asyncresolver.Resolver()
        return self._resolver

    async def lookup_a_records(self, domain: str) -> list[str]:
        resolver = self._get_resolver()
        if self.lifetime is not None:
            answers = await resolver.resolve(domain, "A", lifetime=self.lifetime)
        else:
            answers = await resolver.resolve(domain, "A")
        return [rdata.address for rdata in answers]

    async def points_to_platform(self, domain: str) -> bool:
        try:
            addresses = await self.lookup_a_records(domain)
        except (dns.exception.DNSException, OSError) as e:
            logger.info("DNS lookup failed for %s: %s", domain, e)
            return False

        if self.ingress_ip in addresses:
            logger.info("Domain %s points to platform ingress %s", domain, self.ingress_ip)
            return True

        logger.info(
            "Domain %s does not point to platform ingress. Expected: %s, got: %s",
            domain, self.ingress_ip, ", ".join(addresses) or "(none)",
        )
        return False

"""Domain normalization, format validation and status messages."""
import re
from dataclasses import dataclass
from typing import Optional

from app.models.tenant import DomainStatus

_SCHEME_PATTERN = re.compile(r"^https?://")
_LABEL_PATTERN = re.compile(r"^[a-z0-9-]+$")
_TLD_PATTERN = re.compile(r"^[a-z]{2,63}$")

MIN_DOMAIN_LENGTH = 4
MAX_DOMAIN_LENGTH = 253
MAX_LABEL_LENGTH = 63

_FORMAT_HINT = "Invalid domain format. Use format like: example.com or my-store.co.uk"


@dataclass(frozen=True)
class DomainValidation:
    valid: bool
    reason: Optional[str] = None


def normalize_domain(raw: object) -> str:
    """Canonical comparison key for a host header or user-supplied domain.

    Lowercases, strips the scheme, a leading "www.", any path and the port.
    Never raises; input that is not a host simply comes back lowercased.
    The pass is repeated until stable so the result is a fixed point.
    """
    if not isinstance(raw, str):
        return ""
    normalized = raw
    for _ in range(2 * len(raw) + 2):
        reduced = _normalize_once(normalized)
        if reduced == normalized:
            break
        normalized = reduced
    return normalized


def _normalize_once(value: str) -> str:
    value = value.strip().lower()
    value = _SCHEME_PATTERN.sub("", value)
    if value.startswith("www."):
        value = value[4:]
    value = value.split("/", 1)[0]
    value = value.split(":", 1)[0]
    return value.strip()


def strip_port(host: str) -> str:
    return host.strip().lower().split(":", 1)[0]


def validate_domain_format(raw: object) -> DomainValidation:
    """Check a tenant-supplied domain; the reason is shown to the tenant as-is."""
    domain = normalize_domain(raw)

    if not domain:
        return DomainValidation(False, "Domain is required")
    if len(domain) < MIN_DOMAIN_LENGTH:
        return DomainValidation(False, "Domain is too short")
    if len(domain) > MAX_DOMAIN_LENGTH:
        return DomainValidation(False, f"Domain is too long (max {MAX_DOMAIN_LENGTH} characters)")
    if domain.startswith(".") or domain.endswith("."):
        return DomainValidation(False, "Domain cannot start or end with a dot")
    if ".." in domain:
        return DomainValidation(False, "Domain cannot have consecutive dots")

    labels = domain.split(".")
    if len(labels) < 2:
        return DomainValidation(False, _FORMAT_HINT)

    for label in labels:
        if len(label) > MAX_LABEL_LENGTH:
            return DomainValidation(False, f"Domain labels must be 1-{MAX_LABEL_LENGTH} characters")
        if label.startswith("-") or label.endswith("-"):
            return DomainValidation(False, "Domain labels cannot start or end with hyphens")
        if not _LABEL_PATTERN.match(label):
            return DomainValidation(False, _FORMAT_HINT)

    if not _TLD_PATTERN.match(labels[-1]):
        return DomainValidation(False, _FORMAT_HINT)

    return DomainValidation(True)


# ═══════════════════════════════════════════
#  Status messages (dashboard copy)
# ═══════════════════════════════════════════

STATUS_MESSAGES = {
    DomainStatus.PENDING: "Domain added. Please add the DNS records below to your domain registrar.",
    DomainStatus.VERIFYING: (
        "DNS records not detected yet. This can take 15-60 minutes to propagate worldwide. "
        "Keep checking back!"
    ),
    DomainStatus.SECURING: (
        "DNS verified! We're generating your SSL certificate. "
        "Your store will be live in 2-5 minutes."
    ),
    DomainStatus.LIVE: "Your custom domain is live and secured with SSL!",
}

LIVE_UNREACHABLE_MESSAGE = (
    "Your DNS still points to us, but the domain did not respond just now. "
    "We'll keep serving it; check again in a few minutes."
)


def get_status_message(status: DomainStatus) -> str:
    return STATUS_MESSAGES.get(status, "Unknown status")

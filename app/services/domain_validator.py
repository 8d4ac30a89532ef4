"""
Custom domain syntax / policy validation.

Advisory only: every violated rule is reported so the settings page can show
all problems at once. Global uniqueness is enforced by the store on insert.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from app.config import settings

MAX_DOMAIN_LENGTH = 253
MAX_LABEL_LENGTH = 63

# letters / digits / hyphens, no leading or trailing hyphen, 1-63 chars
_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
_TLD_RE = re.compile(r"^[a-z]{2,63}$")


@dataclass(frozen=True)
class DomainViolation:
    code: str
    message: str


REQUIRED = DomainViolation("required", "Domain name is required")
INVALID_FORMAT = DomainViolation(
    "invalid_format", "Please enter a valid domain name (e.g., mystore.com)"
)
TOO_LONG = DomainViolation(
    "too_long", f"Domain name is too long (maximum {MAX_DOMAIN_LENGTH} characters)"
)
RESERVED = DomainViolation("reserved", "This domain is reserved and cannot be used")


def normalize_domain(value: Optional[str]) -> str:
    """Lower-case, trim whitespace and a trailing root dot."""
    if not value:
        return ""
    return value.strip().lower().rstrip(".")


def _matches_grammar(domain: str) -> bool:
    labels = domain.split(".")
    if len(labels) < 2:
        return False
    if not all(_LABEL_RE.match(label) for label in labels):
        return False
    return bool(_TLD_RE.match(labels[-1]))


def _is_reserved(domain: str, reserved: Iterable[str]) -> bool:
    for entry in reserved:
        if domain == entry or domain.endswith("." + entry):
            return True
    return False


def validate_domain(value: Optional[str], reserved: Optional[Iterable[str]] = None) -> List[DomainViolation]:
    """Return every rule the candidate full domain violates (empty list = valid).

    Deterministic: the same input always yields the same violations in the
    same order.
    """
    domain = normalize_domain(value)
    if not domain:
        return [REQUIRED]

    reserved = settings.reserved_domains if reserved is None else list(reserved)
    violations: List[DomainViolation] = []

    if not _matches_grammar(domain):
        violations.append(INVALID_FORMAT)
    if len(domain) > MAX_DOMAIN_LENGTH:
        violations.append(TOO_LONG)
    if _is_reserved(domain, reserved):
        violations.append(RESERVED)

    return violations

"""
DNS challenge issuing.

The TXT record proves control of the domain's DNS without touching live
traffic; the CNAME record routes traffic to the tenant's edge target.
"""
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.config import settings
from app.services.domain_validator import normalize_domain

TOKEN_BYTES = 24  # 192 bits, url-safe base64 -> 32 chars


@dataclass(frozen=True)
class DomainChallenge:
    full_domain: str
    verification_token: str
    dns_target: str
    dns_instructions: Dict[str, Any]

    @property
    def txt_value(self) -> str:
        return self.dns_instructions["txt_record"]["value"]


def build_full_domain(domain_name: str, subdomain_label: Optional[str] = None) -> str:
    domain_name = normalize_domain(domain_name)
    label = normalize_domain(subdomain_label)
    return f"{label}.{domain_name}" if label else domain_name


def generate_verification_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def txt_record_value(token: str, prefix: Optional[str] = None) -> str:
    return f"{prefix or settings.VERIFICATION_PREFIX}-verification={token}"


def cname_target(tenant_id: Any, base_domain: Optional[str] = None) -> str:
    return f"{tenant_id}.{base_domain or settings.PLATFORM_BASE_DOMAIN}"


def build_dns_instructions(full_domain: str, token: str, dns_target: str) -> Dict[str, Any]:
    return {
        "txt_record": {
            "name": full_domain,
            "value": txt_record_value(token),
            "type": "TXT",
        },
        "cname_record": {
            "name": full_domain,
            "value": dns_target,
            "type": "CNAME",
        },
    }


def issue_challenge(tenant_id: Any, domain_name: str, subdomain_label: Optional[str] = None) -> DomainChallenge:
    """Derive the full domain and a fresh token with its DNS instructions."""
    full_domain = build_full_domain(domain_name, subdomain_label)
    token = generate_verification_token()
    target = cname_target(tenant_id)
    return DomainChallenge(
        full_domain=full_domain,
        verification_token=token,
        dns_target=target,
        dns_instructions=build_dns_instructions(full_domain, token, target),
    )

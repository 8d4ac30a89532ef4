"""DNS / certificate verification for custom domain ownership.

The registry only depends on the ``VerificationChecker`` protocol. The
production adapter checks:

    # TXT record (proves ownership)
    shop.mystore.com  TXT    "sellusgenie-verification=<token>"

    # CNAME record (routes traffic)
    shop.mystore.com  CNAME  <tenant_id>.sellusgenie.com

and the certificate served for the domain on port 443.
"""

import logging
import socket
import ssl
from typing import Optional, Protocol

import dns.exception
import dns.resolver

from app.config import settings
from app.core.errors import ExternalCheckFailed
from app.models.custom_domain import SslStatus
from app.services.challenge import txt_record_value

logger = logging.getLogger("storefront.verification")


class VerificationChecker(Protocol):
    def check_txt(self, full_domain: str, token: str) -> bool: ...

    def check_cname(self, full_domain: str, target: str) -> bool: ...

    def check_ssl(self, full_domain: str) -> SslStatus: ...


class DnsVerificationChecker:
    """dnspython for DNS lookups, a TLS handshake for certificate status.

    "Record not there yet" answers are ``False`` / ``PENDING``; resolver
    timeouts and unreachable servers raise ``ExternalCheckFailed``.
    """

    def __init__(
        self,
        prefix: Optional[str] = None,
        dns_timeout: Optional[float] = None,
        ssl_timeout: Optional[float] = None,
        resolver: Optional[dns.resolver.Resolver] = None,
    ):
        self.prefix = prefix or settings.VERIFICATION_PREFIX
        self.ssl_timeout = ssl_timeout if ssl_timeout is not None else settings.SSL_CHECK_TIMEOUT
        self.resolver = resolver or dns.resolver.Resolver()
        self.resolver.lifetime = dns_timeout if dns_timeout is not None else settings.DNS_LOOKUP_TIMEOUT

    def _resolve(self, name: str, rdtype: str):
        try:
            return self.resolver.resolve(name, rdtype)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return None
        except dns.exception.Timeout as e:
            raise ExternalCheckFailed(f"DNS lookup for {name} timed out") from e
        except dns.resolver.NoNameservers as e:
            raise ExternalCheckFailed(f"No nameserver answered for {name}") from e
        except dns.exception.DNSException as e:
            raise ExternalCheckFailed(f"DNS lookup for {name} failed: {e}") from e

    def check_txt(self, full_domain: str, token: str) -> bool:
        expected = txt_record_value(token, prefix=self.prefix)
        answers = self._resolve(full_domain, "TXT")
        if answers is None:
            return False
        for rdata in answers:
            value = b"".join(rdata.strings).decode("utf-8", errors="replace").strip().strip('"')
            if value == expected:
                return True
        return False

    def check_cname(self, full_domain: str, target: str) -> bool:
        answers = self._resolve(full_domain, "CNAME")
        if answers is None:
            return False
        wanted = target.lower().rstrip(".")
        return any(rdata.target.to_text().lower().rstrip(".") == wanted for rdata in answers)

    def check_ssl(self, full_domain: str) -> SslStatus:
        context = ssl.create_default_context()
        try:
            with socket.create_connection((full_domain, 443), timeout=self.ssl_timeout) as sock:
                with context.wrap_socket(sock, server_hostname=full_domain):
                    return SslStatus.ACTIVE
        except ssl.SSLCertVerificationError as e:
            if "expired" in str(getattr(e, "verify_message", None) or e).lower():
                return SslStatus.EXPIRED
            # Edge still serves the shared certificate: ours is not issued yet
            logger.debug("Certificate for %s not issued yet: %s", full_domain, e)
            return SslStatus.PENDING
        except ssl.SSLError as e:
            logger.info("TLS handshake failed for %s: %s", full_domain, e)
            return SslStatus.FAILED
        except socket.timeout as e:
            raise ExternalCheckFailed(f"TLS check for {full_domain} timed out") from e
        except OSError as e:
            raise ExternalCheckFailed(f"Could not connect to {full_domain}:443 ({e})") from e


def get_verification_checker() -> DnsVerificationChecker:
    return DnsVerificationChecker()

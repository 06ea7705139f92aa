"""SSL utility functions."""

from sslcert.utils.helpers import (
    domains_match,
    extract_ca_name,
    fingerprint,
    normalize_domain,
    parse_pem_chain,
    unique_domains,
)

__all__ = [
    "domains_match", "extract_ca_name", "fingerprint",
    "normalize_domain", "parse_pem_chain", "unique_domains",
]

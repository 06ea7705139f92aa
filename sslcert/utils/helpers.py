"""SSL helper utilities."""

import hashlib
import re

PEM_PATTERN = re.compile(
    r"-----BEGIN CERTIFICATE-----\s+.+?\s+-----END CERTIFICATE-----",
    re.DOTALL,
)

# Issuer organizationName / commonName fragment -> friendly CA name
_CA_MAP = {
    "let's encrypt": "Let's Encrypt",
    "internet security research group": "Let's Encrypt",
    "isrg": "Let's Encrypt",
    "sectigo": "Sectigo",
    "comodo": "Sectigo",
    "usertrust": "Sectigo",
    "digicert": "DigiCert",
    "geotrust": "DigiCert",
    "rapidssl": "DigiCert",
    "thawte": "DigiCert",
    "globalsign": "GlobalSign",
    "godaddy": "GoDaddy",
    "starfield technologies": "GoDaddy",
    "amazon": "Amazon",
    "google trust services": "Google Trust Services",
    "cloudflare": "Cloudflare",
    "microsoft": "Microsoft",
    "entrust": "Entrust",
    "buypass": "Buypass",
    "zerossl": "ZeroSSL",
    "ssl.com": "SSL.com",
    "actalis": "Actalis",
    "certum": "Certum",
}

_ORG_KEYS = ("o", "organizationname")
_CN_KEYS = ("cn", "commonname")


def parse_pem_chain(pem_text: str) -> list[str]:
    """Split a PEM bundle into individual certificate strings.

    Args:
        pem_text: PEM-encoded text potentially containing multiple certs.

    Returns:
        List of individual PEM certificate strings.
    """
    return PEM_PATTERN.findall(pem_text)


def fingerprint(der_bytes: bytes, algorithm: str = "sha256") -> str:
    """Colon-separated upper-case hex digest of a DER certificate."""
    digest = hashlib.new(algorithm, der_bytes).hexdigest()
    return ":".join(digest[i:i + 2].upper() for i in range(0, len(digest), 2))


def normalize_domain(domain: str) -> str:
    """Registry key for a domain: trimmed, lower-cased, no trailing dot."""
    if not domain:
        return ""
    return domain.strip().lower().rstrip(".")


def strip_www(domain: str) -> str:
    key = normalize_domain(domain)
    return key[4:] if key.startswith("www.") else key


def is_wildcard(domain: str) -> bool:
    return domain.strip().startswith("*.")


def www_variant(domain: str) -> str:
    """``example.com`` <-> ``www.example.com``."""
    key = normalize_domain(domain)
    if key.startswith("www."):
        return key[4:]
    return f"www.{key}"


def domains_match(a: str, b: str) -> bool:
    """Whether two names refer to the same site for certificate lookup.

    Names match when equal ignoring case and a leading ``www.``, or when
    one is a wildcard whose suffix equals or is a parent of the other.
    """
    left, right = normalize_domain(a), normalize_domain(b)
    if not left or not right:
        return False
    for pattern, name in ((left, right), (right, left)):
        if pattern.startswith("*."):
            suffix = pattern[2:]
            bare = name[2:] if name.startswith("*.") else name
            if bare == suffix or bare.endswith("." + suffix):
                return True
    return strip_www(left) == strip_www(right)


def unique_domains(names) -> list[str]:
    """De-duplicate names case-insensitively, keeping first-seen original form."""
    seen = set()
    result = []
    for name in names:
        if not name:
            continue
        name = name.strip()
        key = normalize_domain(name)
        if key and key not in seen:
            seen.add(key)
            result.append(name)
    return result


def _dn_attributes(dn: str) -> dict:
    """Parse ``CN=x,O=y`` / ``C = US, O = y`` / ``/C=US/O=y`` into a dict."""
    attrs = {}
    for part in re.split(r"[,/]", dn or ""):
        if "=" not in part:
            continue
        key, _, value = part.partition("=")
        key = key.strip().lower()
        if key and key not in attrs:
            attrs[key] = value.strip()
    return attrs


def common_name(dn: str) -> str:
    attrs = _dn_attributes(dn)
    for key in _CN_KEYS:
        if attrs.get(key):
            return attrs[key]
    return ""


def extract_ca_name(issuer: str) -> str:
    """Extract a clean CA name from a raw issuer string.

    Tries to match organizationName or commonName against known CAs.
    Falls back to the raw organizationName, then CN, then the issuer itself.
    """
    if not issuer:
        return ""

    attrs = _dn_attributes(issuer)
    org_name = next((attrs[k] for k in _ORG_KEYS if attrs.get(k)), "")
    cn_name = next((attrs[k] for k in _CN_KEYS if attrs.get(k)), "")

    for candidate in (org_name, cn_name):
        if not candidate:
            continue
        lowered = candidate.lower()
        if lowered in _CA_MAP:
            return _CA_MAP[lowered]
        for key, friendly in _CA_MAP.items():
            if key in lowered:
                return friendly

    if org_name:
        return org_name
    if cn_name:
        return cn_name
    return issuer[:60]

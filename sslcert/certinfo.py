"""Normalised certificate metadata and the parsers that produce it."""

import datetime
import re
from dataclasses import dataclass, field
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID

from sslcert.utils.helpers import (
    common_name,
    domains_match,
    fingerprint,
    is_wildcard,
    parse_pem_chain,
    unique_domains,
)

OPENSSL_DATE_FORMAT = "%b %d %H:%M:%S %Y %Z"
_SAN_DNS = re.compile(r"DNS:([^,\s]+)", re.IGNORECASE)


@dataclass
class CertInfo:
    """What every inspection strategy reports about a certificate."""

    valid_from: datetime.datetime
    valid_to: datetime.datetime
    issuer: str
    subject: str
    domains: list[str] = field(default_factory=list)
    serial_number: str = ""
    fingerprint_sha256: str = ""
    source: str = ""
    certificate_path: str = ""

    @property
    def common_name(self) -> str:
        return common_name(self.subject)

    def covers(self, domain: str) -> bool:
        """True if any covered name matches ``domain``."""
        return any(domains_match(name, domain) for name in self.domains)

    def monitorable_domains(self) -> list[str]:
        """Covered names that can be probed on their own (wildcards excluded)."""
        return [d for d in self.domains if not is_wildcard(d)]

    def to_dict(self) -> dict:
        return {
            "valid_from": self.valid_from.isoformat(),
            "valid_to": self.valid_to.isoformat(),
            "issuer": self.issuer,
            "subject": self.subject,
            "domains": list(self.domains),
            "serial_number": self.serial_number,
            "fingerprint_sha256": self.fingerprint_sha256,
            "source": self.source,
            "certificate_path": self.certificate_path,
        }


def extract_domains(subject_cn: str, san_names) -> list[str]:
    """CN plus every SAN DNS name, original form, de-duplicated."""
    return unique_domains([subject_cn, *san_names])


def from_x509(cert: x509.Certificate, source: str, certificate_path: str = "") -> CertInfo:
    """Build a CertInfo from a parsed ``cryptography`` certificate."""
    cn_attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    cn = str(cn_attrs[0].value) if cn_attrs else ""
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        san_names = san.value.get_values_for_type(x509.DNSName)
    except x509.ExtensionNotFound:
        san_names = []

    return CertInfo(
        valid_from=cert.not_valid_before_utc,
        valid_to=cert.not_valid_after_utc,
        issuer=cert.issuer.rfc4514_string(),
        subject=cert.subject.rfc4514_string(),
        domains=extract_domains(cn, san_names),
        serial_number=format(cert.serial_number, "X"),
        fingerprint_sha256=fingerprint(cert.public_bytes(Encoding.DER)),
        source=source,
        certificate_path=certificate_path,
    )


def from_der(der_bytes: bytes, source: str) -> CertInfo:
    return from_x509(x509.load_der_x509_certificate(der_bytes), source)


def load_pem_file(path, source: str = "filesystem") -> CertInfo:
    """Parse the leaf (first) certificate of a PEM bundle such as fullchain.pem."""
    path = Path(path)
    blocks = parse_pem_chain(path.read_text())
    if not blocks:
        raise ValueError(f"no PEM certificate in {path}")
    cert = x509.load_pem_x509_certificate(blocks[0].encode())
    return from_x509(cert, source, certificate_path=str(path))


def _parse_openssl_date(value: str) -> datetime.datetime:
    parsed = datetime.datetime.strptime(value.strip(), OPENSSL_DATE_FORMAT)
    return parsed.replace(tzinfo=datetime.timezone.utc)


def parse_openssl_output(output: str, source: str = "openssl") -> CertInfo:
    """Parse ``openssl x509 -noout -subject -issuer -startdate -enddate -serial -text`` output.

    Raises:
        ValueError: if the validity dates are missing or unreadable.
    """
    fields = {}
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip().lower()
        if key in ("subject", "issuer", "notbefore", "notafter", "serial") and key not in fields:
            fields[key] = value.strip()

    if "notbefore" not in fields or "notafter" not in fields:
        raise ValueError("validity dates missing from openssl output")

    subject = fields.get("subject", "")
    return CertInfo(
        valid_from=_parse_openssl_date(fields["notbefore"]),
        valid_to=_parse_openssl_date(fields["notafter"]),
        issuer=fields.get("issuer", ""),
        subject=subject,
        domains=extract_domains(common_name(subject), _SAN_DNS.findall(output)),
        serial_number=fields.get("serial", ""),
        source=source,
    )

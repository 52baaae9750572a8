"""Parser for OpenSSL-style X.509 v3 extension files.

The signing step reads the extensions for the leaf certificate from a small
config file, the same format ``openssl x509 -req -extfile`` accepts::

    authorityKeyIdentifier = keyid,issuer
    basicConstraints = CA:FALSE
    keyUsage = digitalSignature, nonRepudiation, keyEncipherment, dataEncipherment
    subjectAltName = @alt_names

    [alt_names]
    DNS.1 = localhost

Directives are read from the unnamed section at the top of the file unless a
section name is given. Key identifiers depend on the leaf key and on the CA
certificate, so parsing yields an ``ExtensionProfile`` that is resolved into
concrete extensions only at signing time.
"""

import ipaddress
from dataclasses import dataclass, field
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes
from cryptography.x509.oid import ExtendedKeyUsageOID

from cert_util.lib.exceptions import ExtensionFileError

DEFAULT_SECTION = ""

KEY_USAGE_FLAGS = {
    "digitalSignature": "digital_signature",
    "nonRepudiation": "content_commitment",
    "keyEncipherment": "key_encipherment",
    "dataEncipherment": "data_encipherment",
    "keyAgreement": "key_agreement",
    "keyCertSign": "key_cert_sign",
    "cRLSign": "crl_sign",
    "encipherOnly": "encipher_only",
    "decipherOnly": "decipher_only",
}

EXTENDED_KEY_USAGES = {
    "serverAuth": ExtendedKeyUsageOID.SERVER_AUTH,
    "clientAuth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "codeSigning": ExtendedKeyUsageOID.CODE_SIGNING,
    "emailProtection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "timeStamping": ExtendedKeyUsageOID.TIME_STAMPING,
    "OCSPSigning": ExtendedKeyUsageOID.OCSP_SIGNING,
}


@dataclass
class KeyIdentifierRequest:
    """Marker for a subjectKeyIdentifier = hash directive."""


@dataclass
class AuthorityKeyIdentifierRequest:
    """Parsed authorityKeyIdentifier options.

    Each option is None (absent), "optional" or "always".
    """

    keyid: str | None = None
    issuer: str | None = None


@dataclass
class ExtensionEntry:
    """One extension directive, in file order."""

    name: str
    critical: bool
    value: x509.ExtensionType | KeyIdentifierRequest | AuthorityKeyIdentifierRequest


@dataclass
class ExtensionProfile:
    """Extensions to add to a leaf certificate, as read from an extension file."""

    entries: list[ExtensionEntry] = field(default_factory=list)

    def names(self) -> list[str]:
        """Return directive names in file order."""
        return [entry.name for entry in self.entries]

    def to_extensions(
        self,
        subject_public_key: PublicKeyTypes,
        issuer_cert: x509.Certificate,
    ) -> list[tuple[x509.ExtensionType, bool]]:
        """Resolve the profile into (extension, critical) pairs.

        Args:
            subject_public_key: Public key of the certificate being issued
            issuer_cert: CA certificate that signs it

        Returns:
            Extensions in file order, ready for x509.CertificateBuilder.add_extension()
        """
        extensions: list[tuple[x509.ExtensionType, bool]] = []
        for entry in self.entries:
            value = entry.value
            if isinstance(value, KeyIdentifierRequest):
                extensions.append(
                    (x509.SubjectKeyIdentifier.from_public_key(subject_public_key), entry.critical)
                )
            elif isinstance(value, AuthorityKeyIdentifierRequest):
                extensions.append((_resolve_authority_key_identifier(value, issuer_cert), entry.critical))
            else:
                extensions.append((value, entry.critical))
        return extensions


def _resolve_authority_key_identifier(
    request: AuthorityKeyIdentifierRequest,
    issuer_cert: x509.Certificate,
) -> x509.AuthorityKeyIdentifier:
    key_identifier = None
    if request.keyid is not None:
        try:
            ski = issuer_cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
            key_identifier = ski.digest
        except x509.ExtensionNotFound:
            key_identifier = x509.SubjectKeyIdentifier.from_public_key(issuer_cert.public_key()).digest

    # openssl only adds issuer+serial when forced or when there is no key id
    include_issuer = request.issuer == "always" or (request.issuer is not None and key_identifier is None)
    if not include_issuer:
        return x509.AuthorityKeyIdentifier(
            key_identifier=key_identifier,
            authority_cert_issuer=None,
            authority_cert_serial_number=None,
        )
    return x509.AuthorityKeyIdentifier(
        key_identifier=key_identifier,
        authority_cert_issuer=[x509.DirectoryName(issuer_cert.issuer)],
        authority_cert_serial_number=issuer_cert.serial_number,
    )


@dataclass
class _Line:
    lineno: int
    key: str
    value: str


def _split_sections(text: str, source: str) -> dict[str, list[_Line]]:
    sections: dict[str, list[_Line]] = {DEFAULT_SECTION: []}
    current = DEFAULT_SECTION

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue

        if line.startswith("["):
            if not line.endswith("]") or not line[1:-1].strip():
                raise ExtensionFileError(f"{source}:{lineno}: malformed section header: {raw.strip()}")
            current = line[1:-1].strip()
            if current in sections:
                raise ExtensionFileError(f"{source}:{lineno}: duplicate section [{current}]")
            sections[current] = []
            continue

        if "=" not in line:
            raise ExtensionFileError(f"{source}:{lineno}: expected 'name = value': {raw.strip()}")
        key, value = (part.strip() for part in line.split("=", 1))
        if not key or not value:
            raise ExtensionFileError(f"{source}:{lineno}: expected 'name = value': {raw.strip()}")
        if any(existing.key == key for existing in sections[current]):
            raise ExtensionFileError(f"{source}:{lineno}: duplicate entry {key}")
        sections[current].append(_Line(lineno, key, value))

    return sections


def _split_values(value: str) -> tuple[bool, list[str]]:
    items = [item.strip() for item in value.split(",") if item.strip()]
    critical = bool(items) and items[0] == "critical"
    if critical:
        items = items[1:]
    return critical, items


def _parse_basic_constraints(line: _Line, items: list[str], source: str) -> x509.BasicConstraints:
    ca: bool | None = None
    path_length: int | None = None
    for item in items:
        name, _, arg = (part.strip() for part in item.partition(":"))
        if name.upper() == "CA" and arg.upper() in ("TRUE", "FALSE"):
            ca = arg.upper() == "TRUE"
        elif name.lower() == "pathlen" and arg.isdigit():
            path_length = int(arg)
        else:
            raise ExtensionFileError(f"{source}:{line.lineno}: invalid basicConstraints value: {item}")

    if ca is None:
        raise ExtensionFileError(f"{source}:{line.lineno}: basicConstraints requires CA:TRUE or CA:FALSE")
    if path_length is not None and not ca:
        raise ExtensionFileError(f"{source}:{line.lineno}: pathlen is only allowed with CA:TRUE")
    return x509.BasicConstraints(ca=ca, path_length=path_length)


def _parse_key_usage(line: _Line, items: list[str], source: str) -> x509.KeyUsage:
    flags = dict.fromkeys(KEY_USAGE_FLAGS.values(), False)
    for item in items:
        if item not in KEY_USAGE_FLAGS:
            raise ExtensionFileError(f"{source}:{line.lineno}: unknown keyUsage value: {item}")
        flags[KEY_USAGE_FLAGS[item]] = True
    try:
        return x509.KeyUsage(**flags)
    except ValueError as e:
        raise ExtensionFileError(f"{source}:{line.lineno}: invalid keyUsage: {e}") from e


def _parse_extended_key_usage(line: _Line, items: list[str], source: str) -> x509.ExtendedKeyUsage:
    usages = []
    for item in items:
        if item not in EXTENDED_KEY_USAGES:
            raise ExtensionFileError(f"{source}:{line.lineno}: unknown extendedKeyUsage value: {item}")
        usages.append(EXTENDED_KEY_USAGES[item])
    return x509.ExtendedKeyUsage(usages)


def _general_name(kind: str, value: str, lineno: int, source: str) -> x509.GeneralName:
    try:
        if kind == "DNS":
            return x509.DNSName(value)
        if kind == "IP":
            return x509.IPAddress(ipaddress.ip_address(value))
        if kind == "email":
            return x509.RFC822Name(value)
        if kind == "URI":
            return x509.UniformResourceIdentifier(value)
    except ValueError as e:
        raise ExtensionFileError(f"{source}:{lineno}: invalid {kind} name {value!r}: {e}") from e
    raise ExtensionFileError(f"{source}:{lineno}: unsupported subjectAltName type: {kind}")


def _parse_subject_alt_name(
    line: _Line,
    items: list[str],
    sections: dict[str, list[_Line]],
    source: str,
) -> x509.SubjectAlternativeName:
    names: list[x509.GeneralName] = []
    for item in items:
        if item.startswith("@"):
            section = item[1:]
            if section not in sections:
                raise ExtensionFileError(f"{source}:{line.lineno}: section [{section}] not found")
            for entry in sections[section]:
                kind = entry.key.split(".", 1)[0]
                names.append(_general_name(kind, entry.value, entry.lineno, source))
            continue

        kind, sep, value = item.partition(":")
        if not sep or not value.strip():
            raise ExtensionFileError(f"{source}:{line.lineno}: invalid subjectAltName value: {item}")
        names.append(_general_name(kind.strip(), value.strip(), line.lineno, source))

    if not names:
        raise ExtensionFileError(f"{source}:{line.lineno}: subjectAltName has no names")
    return x509.SubjectAlternativeName(names)


def _parse_authority_key_identifier(line: _Line, items: list[str], source: str) -> AuthorityKeyIdentifierRequest:
    request = AuthorityKeyIdentifierRequest()
    for item in items:
        name, _, arg = (part.strip() for part in item.partition(":"))
        if name not in ("keyid", "issuer") or arg not in ("", "always"):
            raise ExtensionFileError(f"{source}:{line.lineno}: invalid authorityKeyIdentifier value: {item}")
        setattr(request, name, arg or "optional")
    if request.keyid is None and request.issuer is None:
        raise ExtensionFileError(f"{source}:{line.lineno}: authorityKeyIdentifier needs keyid or issuer")
    return request


def parse_extension_text(text: str, section: str | None = None, source: str = "<extfile>") -> ExtensionProfile:
    """Parse extension file contents into an ExtensionProfile.

    Args:
        text: File contents
        section: Section holding the directives (default: unnamed top section)
        source: Name used in error messages

    Raises:
        ExtensionFileError: On malformed lines, unknown directives or values, or missing sections
    """
    sections = _split_sections(text, source)
    section_name = section or DEFAULT_SECTION
    if section_name not in sections:
        raise ExtensionFileError(f"{source}: section [{section_name}] not found")

    profile = ExtensionProfile()
    for line in sections[section_name]:
        critical, items = _split_values(line.value)
        value: x509.ExtensionType | KeyIdentifierRequest | AuthorityKeyIdentifierRequest
        if line.key == "basicConstraints":
            value = _parse_basic_constraints(line, items, source)
        elif line.key == "keyUsage":
            value = _parse_key_usage(line, items, source)
        elif line.key == "extendedKeyUsage":
            value = _parse_extended_key_usage(line, items, source)
        elif line.key == "subjectAltName":
            value = _parse_subject_alt_name(line, items, sections, source)
        elif line.key == "subjectKeyIdentifier":
            if items == ["none"]:
                continue
            if items != ["hash"]:
                raise ExtensionFileError(f"{source}:{line.lineno}: subjectKeyIdentifier must be 'hash'")
            value = KeyIdentifierRequest()
        elif line.key == "authorityKeyIdentifier":
            value = _parse_authority_key_identifier(line, items, source)
        else:
            raise ExtensionFileError(f"{source}:{line.lineno}: unsupported extension: {line.key}")
        profile.entries.append(ExtensionEntry(name=line.key, critical=critical, value=value))

    return profile


def load_extension_file(path: Path, section: str | None = None) -> ExtensionProfile:
    """Read and parse an extension file.

    Raises:
        ExtensionFileError: If the file cannot be read or is malformed
    """
    try:
        text = path.read_text()
    except OSError as e:
        raise ExtensionFileError(f"failed to open {path}: {e.strerror or e}") from e
    return parse_extension_text(text, section=section, source=str(path))

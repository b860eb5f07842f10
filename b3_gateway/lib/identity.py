"""mTLS client identity construction from certificate and key material."""

import base64
import binascii
import ssl
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.hazmat.primitives.serialization import pkcs12

from .config import ENV_VARS, GatewayConfig
from .errors import MalformedCredential, MissingCredential
from .logging_config import LOGGER


@dataclass(frozen=True)
class TLSIdentity:
    """Reusable client identity: SSL context plus certificate diagnostics."""

    ssl_context: ssl.SSLContext
    subject_cn: str
    serial_number: str
    not_after: datetime


def decode_base64(name: str, value: str) -> bytes:
    """Decode base64 transport encoding, tolerating embedded whitespace."""
    try:
        return base64.b64decode("".join(value.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedCredential(f"{name} is not valid base64") from e


def load_certificates(data: bytes) -> list[x509.Certificate]:
    """Load a PEM chain (leaf first) or a single DER certificate."""
    try:
        if b"-----BEGIN" in data:
            return x509.load_pem_x509_certificates(data)
        return [x509.load_der_x509_certificate(data)]
    except ValueError as e:
        raise MalformedCredential("Client certificate could not be decoded") from e


def load_private_key(data: bytes) -> PrivateKeyTypes:
    """Load an unencrypted PEM or DER private key."""
    try:
        if b"-----BEGIN" in data:
            return serialization.load_pem_private_key(data, password=None)
        return serialization.load_der_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise MalformedCredential("Private key could not be decoded") from e


def load_pkcs12(
    data: bytes, password: str | None
) -> tuple[PrivateKeyTypes, list[x509.Certificate]]:
    """Load key and certificate chain from a PKCS#12 bundle."""
    try:
        key, cert, additional = pkcs12.load_key_and_certificates(
            data, password.encode("utf-8") if password else None
        )
    except ValueError as e:
        raise MalformedCredential("PKCS#12 bundle could not be decoded (check B3_P12_PASSWORD)") from e

    if key is None or cert is None:
        raise MalformedCredential("PKCS#12 bundle must contain a private key and a certificate")
    return key, [cert, *additional]


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = f"{cert.serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def get_common_name(cert: x509.Certificate) -> str:
    """Return the subject CN, or the full RFC 4514 subject when there is none."""
    attributes = cert.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
    if not attributes:
        return cert.subject.rfc4514_string()
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode("utf-8")


def _public_key_der(key) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def build_ssl_context(
    key: PrivateKeyTypes,
    chain: list[x509.Certificate],
    verify: bool,
    ca_bundle: bytes | None = None,
) -> ssl.SSLContext:
    """Build a client SSL context presenting ``chain`` with ``key``.

    Args:
        key: Client private key
        chain: Client certificate followed by any intermediates
        verify: Verify the upstream server certificate and hostname
        ca_bundle: Extra PEM trust anchors added when verifying

    Returns:
        SSL context for mutually authenticated HTTPS

    Raises:
        MalformedCredential: If the key does not match the certificate
    """
    if _public_key_der(key.public_key()) != _public_key_der(chain[0].public_key()):
        raise MalformedCredential("Private key does not match client certificate")

    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    if verify:
        if ca_bundle:
            try:
                context.load_verify_locations(cadata=ca_bundle.decode("ascii"))
            except (ssl.SSLError, UnicodeDecodeError) as e:
                raise MalformedCredential("B3_CA_BUNDLE_BASE64 is not a PEM bundle") from e
    else:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    cert_pem = b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in chain)
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

    # load_cert_chain only accepts file paths
    with tempfile.TemporaryDirectory(prefix="b3-identity-") as tmp:
        cert_path = Path(tmp) / "client.pem"
        key_path = Path(tmp) / "client.key"
        cert_path.write_bytes(cert_pem)
        key_path.touch(mode=0o600)
        key_path.write_bytes(key_pem)
        try:
            context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
        except ssl.SSLError as e:
            raise MalformedCredential("Client certificate chain was rejected by the TLS stack") from e

    return context


def build_identity(config: GatewayConfig) -> TLSIdentity:
    """Decode credential material from config into a TLS client identity.

    Uses the PKCS#12 profile when B3_P12_BASE64 is set, otherwise cert/key.

    Args:
        config: Gateway configuration

    Returns:
        TLSIdentity with a ready SSL context

    Raises:
        MissingCredential: If certificate or key material is absent
        MalformedCredential: If the material cannot be decoded
    """
    if config.uses_p12:
        if not config.p12_password:
            raise MissingCredential(ENV_VARS["p12_password"])
        key, chain = load_pkcs12(
            decode_base64(ENV_VARS["p12_base64"], config.p12_base64),
            config.p12_password,
        )
    else:
        if not config.cert_base64:
            raise MissingCredential(ENV_VARS["cert_base64"])
        if not config.key_base64:
            raise MissingCredential(ENV_VARS["key_base64"])
        chain = load_certificates(decode_base64(ENV_VARS["cert_base64"], config.cert_base64))
        key = load_private_key(decode_base64(ENV_VARS["key_base64"], config.key_base64))

    ca_bundle = None
    if config.ca_bundle_base64:
        ca_bundle = decode_base64(ENV_VARS["ca_bundle_base64"], config.ca_bundle_base64)

    context = build_ssl_context(key, chain, config.verify_upstream_tls, ca_bundle)
    identity = TLSIdentity(
        ssl_context=context,
        subject_cn=get_common_name(chain[0]),
        serial_number=get_certificate_serial_hex(chain[0]),
        not_after=chain[0].not_valid_after_utc,
    )

    LOGGER.info(
        "Loaded client identity CN=%s serial=%s expires=%s",
        identity.subject_cn,
        identity.serial_number,
        identity.not_after.isoformat(),
    )
    if not config.verify_upstream_tls:
        LOGGER.warning(
            "Upstream TLS verification is disabled (environment=%s); "
            "server identity is not checked",
            config.environment,
        )
    return identity


class IdentityProvisioner:
    """Builds the TLS identity once and hands out the same handle afterwards."""

    def __init__(self, config: GatewayConfig) -> None:
        self.config = config
        self._identity: TLSIdentity | None = None

    def get(self) -> TLSIdentity:
        if self._identity is None:
            self._identity = build_identity(self.config)
        return self._identity

"""Test fixtures for b3_gateway tests."""

from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from b3_gateway.lib.config import GatewayConfig
from b3_gateway.tests.fakes import BASE_URL, P12_PASSWORD, TOKEN_URL, FakeUpstream, b64, make_token


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    """Return empty fake upstream."""
    return FakeUpstream()


@pytest.fixture
def access_token() -> str:
    """Token that expires in one hour with typical Azure AD claims."""
    exp = int((datetime.now(UTC) + timedelta(hours=1)).timestamp())
    return make_token(
        {
            "aud": "api://b3-investors",
            "iss": "https://sts.windows.net/tenant-id/",
            "roles": ["Investor.Read"],
            "appid": "client-id-123",
            "tid": "tenant-id",
            "exp": exp,
        }
    )


@pytest.fixture(scope="session")
def client_key() -> RSAPrivateKey:
    """Generate RSA private key for the client certificate."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def client_cert(client_key: RSAPrivateKey) -> x509.Certificate:
    """Generate self-signed client certificate."""
    subject = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "BR"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org"),
            x509.NameAttribute(NameOID.COMMON_NAME, "b3-test-client"),
        ]
    )
    not_before = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(client_key.public_key())
        .serial_number(0x3AF2B1)
        .not_valid_before(not_before)
        .not_valid_after(not_before + timedelta(days=30))
        .add_extension(
            x509.ExtendedKeyUsage([x509.oid.ExtendedKeyUsageOID.CLIENT_AUTH]),
            critical=False,
        )
        .sign(client_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def cert_pem(client_cert: x509.Certificate) -> bytes:
    return client_cert.public_bytes(serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def key_pem(client_key: RSAPrivateKey) -> bytes:
    return client_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def p12_bytes(client_key: RSAPrivateKey, client_cert: x509.Certificate) -> bytes:
    """PKCS#12 bundle protected by P12_PASSWORD."""
    return pkcs12.serialize_key_and_certificates(
        name=b"b3-test-client",
        key=client_key,
        cert=client_cert,
        cas=None,
        encryption_algorithm=serialization.BestAvailableEncryption(P12_PASSWORD.encode()),
    )


@pytest.fixture
def config(cert_pem: bytes, key_pem: bytes) -> GatewayConfig:
    """Complete cert/key configuration pointing at the fake upstream."""
    return GatewayConfig(
        cert_base64=b64(cert_pem),
        key_base64=b64(key_pem),
        token_url=TOKEN_URL,
        client_id="client-id-123",
        client_secret="client-secret-456",
        scope="api://b3-investors/.default",
        base_url=BASE_URL,
        timeout_seconds=5,
    )


@pytest.fixture
def env_vars(cert_pem: bytes, key_pem: bytes) -> dict[str, str]:
    """Environment variables for a complete cert/key configuration."""
    return {
        "B3_CERT_BASE64": b64(cert_pem),
        "B3_KEY_BASE64": b64(key_pem),
        "B3_TOKEN_URL": TOKEN_URL,
        "B3_CLIENT_ID": "client-id-123",
        "B3_CLIENT_SECRET": "client-secret-456",
        "B3_SCOPE": "api://b3-investors/.default",
        "B3_BASE_URL": BASE_URL,
    }

"""Gateway configuration dataclass."""

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass

from .errors import MissingConfiguration
from .ssm_client import SSMClient

GUIA_PROFILES = {
    "updated-product": "/api/updated-product/v1/investors",
    "guia": "/api/guia",
}

TOKEN_STRATEGIES = ("refetch", "cache")

ENVIRONMENTS = ("certification", "production")

# Field name -> environment variable
ENV_VARS = {
    "cert_base64": "B3_CERT_BASE64",
    "key_base64": "B3_KEY_BASE64",
    "p12_base64": "B3_P12_BASE64",
    "p12_password": "B3_P12_PASSWORD",
    "token_url": "B3_TOKEN_URL",
    "client_id": "B3_CLIENT_ID",
    "client_secret": "B3_CLIENT_SECRET",
    "scope": "B3_SCOPE",
    "base_url": "B3_BASE_URL",
    "enrollment_base_url": "B3_ENROLLMENT_BASE_URL",
    "ca_bundle_base64": "B3_CA_BUNDLE_BASE64",
}

# Field name -> SSM parameter name, for secrets that may live in Parameter Store
SSM_SECRETS = {
    "cert_base64": "cert",
    "key_base64": "key",
    "p12_base64": "p12",
    "p12_password": "p12-password",
    "client_secret": "client-secret",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got '{value}'")


def _parse_number(name: str, value: str, allow_zero: bool = True) -> float:
    try:
        number = float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{value}'") from None
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got '{value}'")
    if number < 0:
        raise ValueError(f"{name} must not be negative")
    if number == 0 and not allow_zero:
        raise ValueError(f"{name} must be greater than 0")
    return number


@dataclass(frozen=True)
class GatewayConfig:
    """Credential bundle and operational settings, read once at startup.

    Credential fields are optional here: each operation checks the ones it
    needs with ``require`` before any network call.
    """

    cert_base64: str | None = None
    key_base64: str | None = None
    p12_base64: str | None = None
    p12_password: str | None = None
    token_url: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    scope: str | None = None
    base_url: str | None = None
    enrollment_base_url: str | None = None
    healthcheck_path: str = "/api/acesso/healthcheck"
    guia_path: str = GUIA_PROFILES["updated-product"]
    enrollment_path: str = "/api/autosservico"
    timeout_seconds: float = 30.0
    environment: str = "certification"
    verify_upstream_tls: bool = False
    ca_bundle_base64: str | None = None
    token_strategy: str = "refetch"
    token_refresh_skew: float = 60.0

    @property
    def uses_p12(self) -> bool:
        """PKCS#12 profile takes precedence over cert/key when configured."""
        return bool(self.p12_base64)

    def require(self, *fields: str) -> None:
        """Raise MissingConfiguration for the first empty field.

        Args:
            fields: GatewayConfig field names required by the caller

        Raises:
            MissingConfiguration: Naming the environment variable that is missing
        """
        for name in fields:
            if not getattr(self, name):
                raise MissingConfiguration(ENV_VARS.get(name, name))

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        ssm_client: SSMClient | None = None,
    ) -> "GatewayConfig":
        """Build configuration from environment variables.

        Args:
            environ: Environment mapping (default: os.environ)
            ssm_client: SSM client used when B3_SSM_PREFIX is set (default: new client)

        Returns:
            Immutable GatewayConfig

        Raises:
            ValueError: If a setting has an invalid value
        """
        env = os.environ if environ is None else environ

        values: dict[str, str | None] = {
            name: env.get(var) or None for name, var in ENV_VARS.items()
        }

        ssm_prefix = env.get("B3_SSM_PREFIX")
        if ssm_prefix:
            missing = [name for name in SSM_SECRETS if not values[name]]
            if missing:
                client = ssm_client or SSMClient(region=env.get("AWS_REGION", "sa-east-1"))
                for name in missing:
                    values[name] = client.get_secret(ssm_prefix, SSM_SECRETS[name]) or None

        environment = env.get("B3_ENVIRONMENT", "certification").strip().lower()
        if environment not in ENVIRONMENTS:
            raise ValueError(f"B3_ENVIRONMENT must be one of {ENVIRONMENTS}, got '{environment}'")

        verify_raw = env.get("B3_TLS_VERIFY")
        if verify_raw:
            verify = _parse_bool("B3_TLS_VERIFY", verify_raw)
        else:
            verify = environment == "production"

        profile = env.get("B3_GUIA_PROFILE", "updated-product")
        if profile not in GUIA_PROFILES:
            raise ValueError(f"B3_GUIA_PROFILE must be one of {tuple(GUIA_PROFILES)}, got '{profile}'")

        strategy = env.get("B3_TOKEN_STRATEGY", "refetch").strip().lower()
        if strategy not in TOKEN_STRATEGIES:
            raise ValueError(f"B3_TOKEN_STRATEGY must be one of {TOKEN_STRATEGIES}, got '{strategy}'")

        return cls(
            **values,
            healthcheck_path=env.get("B3_HEALTHCHECK_PATH") or cls.healthcheck_path,
            guia_path=env.get("B3_GUIA_PATH") or GUIA_PROFILES[profile],
            enrollment_path=env.get("B3_ENROLLMENT_PATH") or cls.enrollment_path,
            timeout_seconds=_parse_number(
                "B3_TIMEOUT_SECONDS", env.get("B3_TIMEOUT_SECONDS", "30"), allow_zero=False
            ),
            environment=environment,
            verify_upstream_tls=verify,
            token_strategy=strategy,
            token_refresh_skew=_parse_number(
                "B3_TOKEN_REFRESH_SKEW", env.get("B3_TOKEN_REFRESH_SKEW", "60")
            ),
        )

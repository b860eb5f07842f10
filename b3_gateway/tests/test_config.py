"""Tests for gateway configuration."""

import dataclasses
from unittest.mock import MagicMock

import pytest

from b3_gateway.lib.config import GUIA_PROFILES, GatewayConfig
from b3_gateway.lib.errors import MissingConfiguration


class TestFromEnv:
    """Tests for GatewayConfig.from_env."""

    def test_reads_credential_bundle(self, env_vars: dict[str, str]) -> None:
        """Should map every B3_* variable to its field."""
        config = GatewayConfig.from_env(env_vars)

        assert config.token_url == env_vars["B3_TOKEN_URL"]
        assert config.client_id == "client-id-123"
        assert config.client_secret == "client-secret-456"
        assert config.scope == "api://b3-investors/.default"
        assert config.base_url == env_vars["B3_BASE_URL"]
        assert config.cert_base64 == env_vars["B3_CERT_BASE64"]

    def test_defaults(self) -> None:
        """Should apply documented defaults when only credentials are missing."""
        config = GatewayConfig.from_env({})

        assert config.timeout_seconds == 30
        assert config.environment == "certification"
        assert config.token_strategy == "refetch"
        assert config.healthcheck_path == "/api/acesso/healthcheck"
        assert config.guia_path == "/api/updated-product/v1/investors"
        assert config.enrollment_path == "/api/autosservico"

    def test_empty_values_are_absent(self) -> None:
        """Empty strings should be treated as unset."""
        config = GatewayConfig.from_env({"B3_TOKEN_URL": ""})
        assert config.token_url is None

    def test_is_immutable(self, env_vars: dict[str, str]) -> None:
        """Config should be read-only after construction."""
        config = GatewayConfig.from_env(env_vars)
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.base_url = "https://elsewhere"  # type: ignore[misc]

    def test_rejects_non_numeric_timeout(self) -> None:
        """Should raise ValueError for an invalid timeout."""
        with pytest.raises(ValueError, match="B3_TIMEOUT_SECONDS"):
            GatewayConfig.from_env({"B3_TIMEOUT_SECONDS": "soon"})

    @pytest.mark.parametrize("raw", ["inf", "-inf", "nan", "0", "-5"])
    def test_rejects_unbounded_or_zero_timeout(self, raw: str) -> None:
        """Timeout must be a finite number greater than 0."""
        with pytest.raises(ValueError, match="B3_TIMEOUT_SECONDS"):
            GatewayConfig.from_env({"B3_TIMEOUT_SECONDS": raw})

    def test_accepts_zero_refresh_skew(self) -> None:
        assert GatewayConfig.from_env({"B3_TOKEN_REFRESH_SKEW": "0"}).token_refresh_skew == 0

    def test_rejects_infinite_refresh_skew(self) -> None:
        with pytest.raises(ValueError, match="B3_TOKEN_REFRESH_SKEW"):
            GatewayConfig.from_env({"B3_TOKEN_REFRESH_SKEW": "inf"})

    def test_rejects_unknown_token_strategy(self) -> None:
        """Should raise ValueError for an unknown strategy."""
        with pytest.raises(ValueError, match="B3_TOKEN_STRATEGY"):
            GatewayConfig.from_env({"B3_TOKEN_STRATEGY": "forever"})

    def test_accepts_cache_strategy(self) -> None:
        """Cache strategy should be selectable."""
        config = GatewayConfig.from_env({"B3_TOKEN_STRATEGY": "cache", "B3_TOKEN_REFRESH_SKEW": "5"})
        assert config.token_strategy == "cache"
        assert config.token_refresh_skew == 5


class TestTLSVerification:
    """Tests for the upstream TLS verification toggle."""

    def test_off_by_default_in_certification(self) -> None:
        """Certification environment should not verify upstream by default."""
        assert GatewayConfig.from_env({}).verify_upstream_tls is False

    def test_on_by_default_in_production(self) -> None:
        """Production environment should verify upstream by default."""
        config = GatewayConfig.from_env({"B3_ENVIRONMENT": "production"})
        assert config.verify_upstream_tls is True

    @pytest.mark.parametrize(("raw", "expected"), [("true", True), ("0", False), ("Off", False)])
    def test_explicit_flag_wins(self, raw: str, expected: bool) -> None:
        """B3_TLS_VERIFY should override the environment default."""
        config = GatewayConfig.from_env({"B3_ENVIRONMENT": "production", "B3_TLS_VERIFY": raw})
        assert config.verify_upstream_tls is expected

    def test_rejects_invalid_flag(self) -> None:
        """Should raise ValueError for a non-boolean flag."""
        with pytest.raises(ValueError, match="B3_TLS_VERIFY"):
            GatewayConfig.from_env({"B3_TLS_VERIFY": "maybe"})

    def test_rejects_unknown_environment(self) -> None:
        """Should raise ValueError for an unknown environment."""
        with pytest.raises(ValueError, match="B3_ENVIRONMENT"):
            GatewayConfig.from_env({"B3_ENVIRONMENT": "staging"})


class TestGuiaProfiles:
    """Tests for guia deployment profiles."""

    @pytest.mark.parametrize("profile", sorted(GUIA_PROFILES))
    def test_profile_selects_path(self, profile: str) -> None:
        """Each profile should map to its upstream path."""
        config = GatewayConfig.from_env({"B3_GUIA_PROFILE": profile})
        assert config.guia_path == GUIA_PROFILES[profile]

    def test_explicit_path_overrides_profile(self) -> None:
        """B3_GUIA_PATH should win over the profile."""
        config = GatewayConfig.from_env({"B3_GUIA_PROFILE": "guia", "B3_GUIA_PATH": "/api/v2/guia"})
        assert config.guia_path == "/api/v2/guia"

    def test_rejects_unknown_profile(self) -> None:
        """Should raise ValueError for an unknown profile."""
        with pytest.raises(ValueError, match="B3_GUIA_PROFILE"):
            GatewayConfig.from_env({"B3_GUIA_PROFILE": "legacy"})


class TestRequire:
    """Tests for GatewayConfig.require."""

    def test_passes_when_present(self, config: GatewayConfig) -> None:
        """Should not raise when all fields are set."""
        config.require("token_url", "client_id", "client_secret", "scope", "base_url")

    def test_names_environment_variable(self, config: GatewayConfig) -> None:
        """Should raise MissingConfiguration naming the variable."""
        config = dataclasses.replace(config, token_url=None)

        with pytest.raises(MissingConfiguration) as exc_info:
            config.require("base_url", "token_url")

        assert exc_info.value.name == "B3_TOKEN_URL"
        assert "B3_TOKEN_URL" in str(exc_info.value)


class TestSSMBackfill:
    """Tests for reading secrets from SSM Parameter Store."""

    def test_fetches_missing_secrets(self) -> None:
        """Should read unset secrets under the configured prefix."""
        ssm = MagicMock()
        ssm.get_secret.side_effect = lambda prefix, name: f"{prefix}:{name}"

        config = GatewayConfig.from_env(
            {"B3_SSM_PREFIX": "b3-gateway/cert", "B3_CERT_BASE64": "from-env"},
            ssm_client=ssm,
        )

        assert config.cert_base64 == "from-env"
        assert config.key_base64 == "b3-gateway/cert:key"
        assert config.client_secret == "b3-gateway/cert:client-secret"
        requested = {call.args[1] for call in ssm.get_secret.call_args_list}
        assert "cert" not in requested

    def test_missing_parameter_stays_unset(self) -> None:
        """A parameter that does not exist should leave the field empty."""
        ssm = MagicMock()
        ssm.get_secret.return_value = None

        config = GatewayConfig.from_env({"B3_SSM_PREFIX": "b3-gateway"}, ssm_client=ssm)

        assert config.p12_base64 is None
        assert config.uses_p12 is False

    def test_not_used_without_prefix(self) -> None:
        """SSM should not be queried when B3_SSM_PREFIX is absent."""
        ssm = MagicMock()
        GatewayConfig.from_env({}, ssm_client=ssm)
        ssm.get_secret.assert_not_called()

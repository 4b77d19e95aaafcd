"""Tests for gateway configuration."""

import pytest
from pydantic import ValidationError

from addon_gateway.config import Environment, GatewayConfig


class TestGatewayConfig:
    def test_defaults(self):
        config = GatewayConfig(environment=Environment.LOCAL)

        assert config.hmac_freshness_window_seconds == 300
        assert config.http_timeout_seconds == 10.0
        assert config.jws_algorithms == ["RS256"]
        assert config.jwks_cache_ttl_seconds is None
        assert config.is_local

    def test_extension_normalized(self):
        assert GatewayConfig(proxy_default_extension="php").proxy_default_extension == ".php"

    def test_proxy_target_root(self):
        config = GatewayConfig(proxy_base_url="http://downstream.test/", proxy_route_prefix="/integration/")
        assert config.proxy_target_root == "http://downstream.test/integration/"

    @pytest.mark.parametrize("field", ["hmac_freshness_window_seconds", "http_timeout_seconds"])
    def test_non_positive_rejected(self, field):
        with pytest.raises(ValidationError):
            GatewayConfig(**{field: 0})

    def test_audience_required_outside_local(self):
        with pytest.raises(ValidationError):
            GatewayConfig(environment=Environment.PROD)

        config = GatewayConfig(environment=Environment.PROD, jws_audience="addon-gateway")
        assert config.is_production

    def test_allowed_origins(self):
        assert GatewayConfig(environment=Environment.LOCAL).get_allowed_origins_list() == ["*"]

        config = GatewayConfig(
            environment=Environment.DEV,
            jws_audience="addon-gateway",
            allowed_origins="https://a.test, https://b.test",
        )
        assert config.get_allowed_origins_list() == ["https://a.test", "https://b.test"]

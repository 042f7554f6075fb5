import pytest
from fastapi.testclient import TestClient

from chess_gateway.app import create_app
from chess_gateway.config import GatewayConfig
from chess_gateway.metrics import get_metrics

UPSTREAM_BASE = "http://upstream.local/api"
SITE_URL = "http://upstream.local"


@pytest.fixture(autouse=True)
def reset_metrics():
    get_metrics().reset_metrics()
    yield
    get_metrics().reset_metrics()


@pytest.fixture
def config():
    return GatewayConfig(
        upstream_base_url=UPSTREAM_BASE,
        site_url=SITE_URL,
        api_token="test-token",
        account_id="gateway-bot",
    )


@pytest.fixture
def client(config):
    return TestClient(create_app(config))


@pytest.fixture
def anonymous_client():
    """Client for a gateway started without any credentials."""
    return TestClient(create_app(GatewayConfig(upstream_base_url=UPSTREAM_BASE, site_url=SITE_URL)))

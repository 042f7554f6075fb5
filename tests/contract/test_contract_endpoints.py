import json

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient
from starlette.exceptions import HTTPException as StarletteHTTPException

from chess_gateway.errors import http_exception_handler
from chess_gateway.routes import ROUTES

# Public contract: every path the gateway serves
EXPECTED_ROUTES = {
    ("GET", "/broadcast"),
    ("GET", "/external-engine"),
    ("GET", "/fide/player"),
    ("GET", "/games/user/{username}"),
    ("GET", "/player"),
    ("GET", "/puzzle/daily"),
    ("GET", "/streamer/live"),
    ("GET", "/swiss/{id}"),
    ("GET", "/swiss/{id}/games"),
    ("GET", "/swiss/{id}/results"),
    ("GET", "/team"),
    ("GET", "/team/search"),
    ("GET", "/team/of/{username}"),
    ("GET", "/team/{id}"),
    ("GET", "/team/{id}/arena"),
    ("GET", "/tournament"),
    ("GET", "/tournament/{id}"),
    ("GET", "/tournament/{id}/games"),
    ("GET", "/tournament/{id}/results"),
    ("GET", "/tournament/{id}/teams"),
    ("GET", "/tv/channels"),
    ("GET", "/user/{username}"),
    ("GET", "/user/{username}/note"),
    ("GET", "/user/{username}/perf/{perf}"),
    ("GET", "/user/{username}/rating-history"),
    ("GET", "/user/{username}/tournament/created"),
    ("GET", "/user/{username}/tournament/played"),
    ("GET", "/users/status"),
    ("POST", "/challenge"),
    ("GET", "/account"),
    ("GET", "/health"),
    ("GET", "/metrics"),
}


@pytest.fixture
def registered(client: TestClient):
    return {
        (method, route.path)
        for route in client.app.routes
        if isinstance(route, APIRoute)
        for method in route.methods
    }


def test_contract_routes_exist(registered):
    assert EXPECTED_ROUTES <= registered


def test_no_unexpected_routes(registered):
    assert registered - EXPECTED_ROUTES == set()


def test_route_table_covers_simple_proxy_routes():
    assert len(ROUTES) == 28


def test_health(client: TestClient):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_wrong_method_is_reported_as_not_found(client: TestClient):
    resp = client.delete("/swiss/abc")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code,expected_status,expected_error",
    [
        (404, 404, "Not Found"),
        (413, 400, "Payload Too Large"),
        (503, 500, "Internal Server Error"),
    ],
)
async def test_framework_statuses_map_into_envelope(status_code, expected_status, expected_error):
    detail = "Not Found" if status_code == 404 else "Payload Too Large"
    response = await http_exception_handler(
        None, StarletteHTTPException(status_code=status_code, detail=detail)
    )
    assert response.status_code == expected_status
    assert json.loads(response.body) == {"error": expected_error}

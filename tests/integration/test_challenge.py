from urllib.parse import parse_qsl

import httpx
import respx

UPSTREAM = "http://upstream.local/api"
SITE_URL = "http://upstream.local"


def _form(request):
    return dict(parse_qsl(request.content.decode()))


def test_create_challenge_success(client):
    with respx.mock(assert_all_called=True) as mock:
        lookup = mock.get(f"{UPSTREAM}/user/alice").respond(200, json={"id": "alice"})
        create = mock.post(f"{UPSTREAM}/challenge/alice").respond(
            200, json={"challenge": {"id": "Abc12345", "status": "created"}}
        )

        resp = client.post(
            "/challenge",
            json={
                "username": "alice",
                "rated": True,
                "clockLimit": 300,
                "clockIncrement": 3,
                "color": "white",
                "variant": "standard",
            },
        )

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["challenge"] == {"challenge": {"id": "Abc12345", "status": "created"}}
    assert data["lichessUrl"] == f"{SITE_URL}/Abc12345"
    assert data["message"] == "Challenge sent successfully to alice!"

    assert lookup.call_count == 1
    request = create.calls.last.request
    assert request.headers["authorization"] == "Bearer test-token"
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    assert _form(request) == {
        "rated": "true",
        "clock.limit": "300",
        "clock.increment": "3",
        "color": "white",
        "variant": "standard",
    }


def test_rated_false_is_still_sent(client):
    with respx.mock(assert_all_called=True) as mock:
        mock.get(f"{UPSTREAM}/user/bob").respond(200, json={"id": "bob"})
        create = mock.post(f"{UPSTREAM}/challenge/bob").respond(200, json={"id": "xyz"})

        resp = client.post("/challenge", json={"username": "bob", "rated": False, "days": 3})

    assert resp.status_code == 200
    assert resp.json()["lichessUrl"] == f"{SITE_URL}/xyz"
    assert _form(create.calls.last.request) == {"rated": "false", "days": "3"}


def test_clock_requires_both_fields(client):
    with respx.mock(assert_all_called=True) as mock:
        mock.get(f"{UPSTREAM}/user/bob").respond(200, json={"id": "bob"})
        create = mock.post(f"{UPSTREAM}/challenge/bob").respond(200, json={"id": "xyz"})

        resp = client.post("/challenge", json={"username": "bob", "clockLimit": 300})

    assert resp.status_code == 200
    assert _form(create.calls.last.request) == {}


def test_missing_username_is_rejected_without_upstream_calls(client):
    with respx.mock(assert_all_called=False) as mock:
        resp = client.post("/challenge", json={"rated": True})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Username is required"}
    assert mock.calls.call_count == 0


def test_blank_username_is_rejected_without_upstream_calls(client):
    with respx.mock(assert_all_called=False) as mock:
        resp = client.post("/challenge", json={"username": "  "})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Username is required"}
    assert mock.calls.call_count == 0


def test_unknown_opponent_stops_before_creation(client):
    with respx.mock(assert_all_called=False) as mock:
        mock.get(f"{UPSTREAM}/user/ghost").respond(404)
        create = mock.post(f"{UPSTREAM}/challenge/ghost").respond(200, json={"id": "x"})

        resp = client.post("/challenge", json={"username": "ghost"})

    assert resp.status_code == 404
    assert resp.json() == {"error": "User not found"}
    assert not create.called


def test_opponent_lookup_failure(client):
    with respx.mock(assert_all_called=False) as mock:
        mock.get(f"{UPSTREAM}/user/alice").respond(502)
        create = mock.post(f"{UPSTREAM}/challenge/alice").respond(200, json={"id": "x"})

        resp = client.post("/challenge", json={"username": "alice"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to create challenge"}
    assert not create.called


def test_upstream_rejection_surfaces_its_message(client):
    with respx.mock(assert_all_called=True) as mock:
        mock.get(f"{UPSTREAM}/user/alice").respond(200, json={"id": "alice"})
        mock.post(f"{UPSTREAM}/challenge/alice").respond(
            400, json={"error": "Invalid clock settings"}
        )

        resp = client.post("/challenge", json={"username": "alice", "clockLimit": 1, "clockIncrement": 0})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid clock settings"}


def test_upstream_rejection_without_message(client):
    with respx.mock(assert_all_called=True) as mock:
        mock.get(f"{UPSTREAM}/user/alice").respond(200, json={"id": "alice"})
        mock.post(f"{UPSTREAM}/challenge/alice").respond(400, text="bad request")

        resp = client.post("/challenge", json={"username": "alice"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid challenge parameters"}


def test_rate_limited_creation(client):
    with respx.mock(assert_all_called=True) as mock:
        mock.get(f"{UPSTREAM}/user/alice").respond(200, json={"id": "alice"})
        mock.post(f"{UPSTREAM}/challenge/alice").respond(429)

        resp = client.post("/challenge", json={"username": "alice"})

    assert resp.status_code == 429
    assert resp.json() == {"error": "Rate limit exceeded. Please try again later."}


def test_creation_server_error(client):
    with respx.mock(assert_all_called=True) as mock:
        mock.get(f"{UPSTREAM}/user/alice").respond(200, json={"id": "alice"})
        mock.post(f"{UPSTREAM}/challenge/alice").respond(500)

        resp = client.post("/challenge", json={"username": "alice"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to create challenge"}


def test_creation_connection_error(client):
    with respx.mock(assert_all_called=True) as mock:
        mock.get(f"{UPSTREAM}/user/alice").respond(200, json={"id": "alice"})
        mock.post(f"{UPSTREAM}/challenge/alice").mock(side_effect=httpx.ConnectTimeout)

        resp = client.post("/challenge", json={"username": "alice"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to create challenge"}


def test_missing_challenge_id_gives_no_viewer_url(client):
    with respx.mock(assert_all_called=True) as mock:
        mock.get(f"{UPSTREAM}/user/alice").respond(200, json={"id": "alice"})
        mock.post(f"{UPSTREAM}/challenge/alice").respond(200, json={"status": "created"})

        resp = client.post("/challenge", json={"username": "alice"})

    assert resp.status_code == 200
    assert resp.json()["lichessUrl"] is None


def test_missing_token_is_detected_after_lookup(anonymous_client):
    with respx.mock(assert_all_called=False) as mock:
        lookup = mock.get(f"{UPSTREAM}/user/alice").respond(200, json={"id": "alice"})
        create = mock.post(f"{UPSTREAM}/challenge/alice").respond(200, json={"id": "x"})

        resp = anonymous_client.post("/challenge", json={"username": "alice"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "API token not configured"}
    assert lookup.called
    assert not create.called


def test_malformed_body_is_rejected(client):
    with respx.mock(assert_all_called=False) as mock:
        resp = client.post(
            "/challenge", content=b"{not json", headers={"content-type": "application/json"}
        )

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request body"}
    assert mock.calls.call_count == 0


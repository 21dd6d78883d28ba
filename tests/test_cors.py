import pytest
from werkzeug.test import Client
from werkzeug.wrappers import Response

from reservation_backend.cors import ALLOWED_ORIGINS, cors, is_allowed_origin

ORIGIN = "http://localhost:3000"


def _make_app(calls):
    def inner(environ, start_response):
        calls.append(environ["REQUEST_METHOD"])
        response = Response("inner", headers={"X-Inner": "yes"})
        return response(environ, start_response)

    return inner


def test_allowed_origin_list():
    assert is_allowed_origin(ORIGIN) is True
    assert ORIGIN in ALLOWED_ORIGINS


@pytest.mark.parametrize("origin", ["", "http://evil.example.com", "http://localhost:3001"])
def test_other_origins_refused(origin):
    assert is_allowed_origin(origin) is False


def test_allowed_request_reaches_app_with_headers():
    calls = []
    client = Client(cors(_make_app(calls)))
    response = client.get("/", headers={"Origin": ORIGIN})
    assert response.status_code == 200
    assert response.get_data(as_text=True) == "inner"
    assert calls == ["GET"]
    assert response.headers["Access-Control-Allow-Origin"] == ORIGIN
    assert response.headers["Access-Control-Allow-Methods"] == "GET, POST, PUT, DELETE, OPTIONS"
    assert response.headers["Access-Control-Allow-Headers"] == "Content-Type, Authorization"
    assert response.headers["Access-Control-Allow-Credentials"] == "true"
    assert response.headers["X-Inner"] == "yes"


@pytest.mark.parametrize("headers", [{}, {"Origin": "http://evil.example.com"}])
def test_forbidden_origin(headers):
    calls = []
    client = Client(cors(_make_app(calls)))
    response = client.post("/", headers=headers)
    assert response.status_code == 403
    assert response.get_json() == {"message": "Forbidden", "data": None}
    assert response.headers["Content-Type"] == "application/json"
    assert "Access-Control-Allow-Origin" not in response.headers
    assert calls == []


def test_preflight_answered_without_app():
    calls = []
    client = Client(cors(_make_app(calls)))
    response = client.options("/", headers={"Origin": ORIGIN})
    assert response.status_code == 200
    assert response.get_data() == b""
    assert response.headers["Access-Control-Allow-Origin"] == ORIGIN
    assert calls == []
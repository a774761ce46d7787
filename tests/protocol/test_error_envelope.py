from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from src.core.position import PositionConsistencyError
from src.protocol.http.app import create_app


def test_error_envelope_for_http_exception() -> None:
    app: FastAPI = create_app()

    @app.get("/boom")
    def boom():  # type: ignore[no-redef]
        raise HTTPException(status_code=400, detail="oops")

    client = TestClient(app)
    r = client.get("/boom")
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["code"] == "bad_request"
    assert err["message"] == "oops"
    assert err["type"] == "client_error"
    assert err["request_id"] == r.headers["x-request-id"]


def test_consistency_failure_maps_to_500() -> None:
    app: FastAPI = create_app()

    @app.get("/corrupt")
    def corrupt():  # type: ignore[no-redef]
        raise PositionConsistencyError("castling rook missing")

    client = TestClient(app, raise_server_exceptions=False)
    r = client.get("/corrupt")
    assert r.status_code == 500
    err = r.json()["error"]
    assert err["code"] == "internal_error"
    assert err["type"] == "server_error"
    assert err["message"] == "Position consistency failure"


def test_unexpected_exception_maps_to_500() -> None:
    app: FastAPI = create_app()

    @app.get("/crash")
    def crash():  # type: ignore[no-redef]
        raise RuntimeError("boom")

    client = TestClient(app, raise_server_exceptions=False)
    r = client.get("/crash")
    assert r.status_code == 500
    assert r.json()["error"]["message"] == "Internal Server Error"

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from barberflow.middleware import RequestContextMiddleware


def _app():
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)

    @app.get("/echo")
    async def echo(request: Request):
        return {"request_id": request.state.request_id}

    return app


def test_generates_request_id():
    response = TestClient(_app()).get("/echo")

    request_id = response.headers["X-Request-ID"]
    assert request_id
    assert response.json()["request_id"] == request_id


def test_honors_incoming_request_id():
    response = TestClient(_app()).get("/echo", headers={"X-Request-ID": "trace-123"})

    assert response.headers["X-Request-ID"] == "trace-123"
    assert response.json()["request_id"] == "trace-123"

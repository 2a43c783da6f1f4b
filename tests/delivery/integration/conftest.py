import pytest
from delivery.api import backend_router, chat_router, tracking_router
from delivery.backend.fake_adapter import FakeBackend
from fastapi import FastAPI
from fastapi.testclient import TestClient


@pytest.fixture()
def fake_backend():
    return FakeBackend()


@pytest.fixture()
def api_app(fake_backend):
    app = FastAPI()
    app.state.backend = fake_backend
    app.include_router(tracking_router)
    app.include_router(chat_router)
    app.include_router(backend_router)
    return app


@pytest.fixture()
def client(api_app):
    return TestClient(api_app)

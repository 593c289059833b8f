import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from shapecrop.config import Settings
from shapecrop.main import create_app
from shapecrop.store.gateway import ShapeStore


def png_bytes(width: int, height: int, color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return ShapeStore(engine)


@pytest.fixture
def client(settings, store):
    app = create_app(settings=settings, store=store)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def unconfigured_client(settings):
    app = create_app(settings=settings, store=ShapeStore(None))
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_png():
    return png_bytes

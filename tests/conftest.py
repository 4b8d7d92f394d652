import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from storefront.server import create_app
from storefront.settings import Settings


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        "UPLOAD_DIR": str(tmp_path / "uploads"),
        "PAGE_SIZE": 2,
        "JWT_SECRET": "test-secret",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


def png_bytes(color="red", size=(8, 8)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, "PNG")
    return buffer.getvalue()


def create_category(client, name="Laptops"):
    response = client.post("/api/categories", json={"name": name})
    assert response.status_code == 201, response.text
    return response.json()


def create_product(client, name="Chair", price=100.5, **fields):
    response = client.post("/api/products", json={"name": name, "price": price, **fields})
    assert response.status_code == 201, response.text
    return response.json()


def create_user(client, email="jane.doe@example.com", name="Jane Doe", **fields):
    response = client.post("/api/users", json={"email": email, "name": name, **fields})
    assert response.status_code == 201, response.text
    return response.json()

import asyncio
import os

from fastapi.testclient import TestClient

from storefront import storage
from storefront.server import create_app
from tests.conftest import create_product, make_settings, png_bytes


def upload(client, product_id, content=None, content_type="image/png", name="photo.png"):
    return client.post(
        "/api/images",
        data={"product_id": str(product_id)},
        files={"file": (name, content if content is not None else png_bytes(), content_type)},
    )


def stored(settings, filename):
    return os.path.exists(os.path.join(settings.UPLOAD_DIR, filename))


def test_upload_list_and_serve_image(client, settings):
    product = create_product(client)
    response = upload(client, product["id"])
    assert response.status_code == 201
    image = response.json()
    assert image["product_id"] == product["id"]
    assert image["url"] == f"/api/images/file/{image['image']}"
    assert image["image"].endswith(".png")
    assert stored(settings, image["image"])

    assert [i["id"] for i in client.get(f"/api/images/{product['id']}").json()] == [image["id"]]

    served = client.get(image["url"])
    assert served.status_code == 200
    assert served.content == png_bytes()


def test_upload_rejects_non_images(client):
    product = create_product(client)
    assert upload(client, product["id"], b"hello", "text/plain", "notes.txt").status_code == 400
    assert upload(client, product["id"], b"definitely not a png").status_code == 400
    assert client.get(f"/api/images/{product['id']}").json() == []


def test_upload_for_unknown_product(client):
    assert upload(client, 999).status_code == 404
    assert client.get("/api/images/999").status_code == 404


def test_upload_size_limit(tmp_path):
    settings = make_settings(tmp_path, MAX_UPLOAD_BYTES=1000)
    with TestClient(create_app(settings)) as client:
        product = create_product(client)
        response = upload(client, product["id"], b"\x89PNG" + b"0" * 2000)
        assert response.status_code == 413
        assert os.listdir(settings.UPLOAD_DIR) == []


def test_replace_and_delete_image(client, settings):
    product = create_product(client)
    image = upload(client, product["id"]).json()

    response = client.put(
        f"/api/images/{image['id']}", files={"file": ("blue.png", png_bytes("blue"), "image/png")}
    )
    assert response.status_code == 200
    replaced = response.json()
    assert replaced["id"] == image["id"]
    assert replaced["image"] != image["image"]
    assert not stored(settings, image["image"])
    assert stored(settings, replaced["image"])

    assert client.delete(f"/api/images/{image['id']}").status_code == 200
    assert not stored(settings, replaced["image"])
    assert client.delete(f"/api/images/{image['id']}").status_code == 404


def test_serving_rejects_traversal_and_missing_files(client):
    assert client.get("/api/images/file/..secret").status_code == 400
    assert client.get("/api/images/file/missing.png").status_code == 404


def test_main_image_lifecycle(client, settings):
    product = create_product(client)
    assert client.get(f"/api/main-image/{product['id']}").json()["main_image"] is None

    response = client.post(
        "/api/main-image",
        data={"product_id": str(product["id"])},
        files={"file": ("main.png", png_bytes(), "image/png")},
    )
    assert response.status_code == 201
    first = response.json()["main_image"]
    assert client.get(f"/api/products/{product['id']}").json()["main_image"] == first
    assert client.get(f"/api/main-image/{product['id']}").json()["url"] == f"/api/images/file/{first}"

    response = client.put(
        f"/api/main-image/{product['id']}", files={"file": ("main2.png", png_bytes("green"), "image/png")}
    )
    assert response.status_code == 200
    second = response.json()["main_image"]
    assert second != first
    assert not stored(settings, first)

    assert client.delete(f"/api/main-image/{product['id']}").status_code == 200
    assert not stored(settings, second)
    assert client.get(f"/api/main-image/{product['id']}").json()["main_image"] is None
    assert client.delete(f"/api/main-image/{product['id']}").status_code == 404
    assert client.put(
        f"/api/main-image/{product['id']}", files={"file": ("x.png", png_bytes(), "image/png")}
    ).status_code == 404


def test_deleting_product_removes_its_files(client, settings):
    product = create_product(client)
    image = upload(client, product["id"]).json()
    main = client.post(
        "/api/main-image",
        data={"product_id": str(product["id"])},
        files={"file": ("main.png", png_bytes(), "image/png")},
    ).json()

    assert client.delete(f"/api/products/{product['id']}").status_code == 200
    assert not stored(settings, image["image"])
    assert not stored(settings, main["main_image"])


def test_stored_name_and_served_type_follow_content_type(client, settings):
    product = create_product(client)
    image = upload(client, product["id"], name="evil.html").json()
    assert image["image"].endswith(".png")
    assert os.listdir(settings.UPLOAD_DIR) == [image["image"]]

    served = client.get(image["url"])
    assert served.status_code == 200
    assert served.headers["content-type"] == "image/png"
    assert served.headers["x-content-type-options"] == "nosniff"


def test_upload_disk_work_runs_in_a_worker_thread(client, monkeypatch):
    offloaded = []
    real_to_thread = asyncio.to_thread

    async def recording_to_thread(func, *args, **kwargs):
        offloaded.append(func.__name__)
        return await real_to_thread(func, *args, **kwargs)

    monkeypatch.setattr(storage.asyncio, "to_thread", recording_to_thread)
    product = create_product(client)
    assert upload(client, product["id"]).status_code == 201
    assert "_write_and_verify" in offloaded

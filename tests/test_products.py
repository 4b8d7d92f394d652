import pytest

from tests.conftest import create_category, create_product, create_user


def test_product_lifecycle(client):
    response = client.post("/api/products", json={"name": "Chair", "price": 100.5})
    assert response.status_code == 201
    product = response.json()
    assert isinstance(product["id"], int)

    fetched = client.get(f"/api/products/{product['id']}").json()
    assert fetched["name"] == "Chair"
    assert fetched["price"] == 100.5

    response = client.put(f"/api/products/{product['id']}", json={"price": 150.0})
    assert response.status_code == 200
    fetched = client.get(f"/api/products/{product['id']}").json()
    assert fetched["price"] == 150.0
    assert fetched["name"] == "Chair"

    response = client.delete(f"/api/products/{product['id']}")
    assert response.status_code == 200
    assert client.get(f"/api/products/{product['id']}").status_code == 404


def test_create_round_trips_all_fields(client):
    category = create_category(client, "Furniture")
    product = create_product(
        client, name="Desk", price=250.0, description="Oak desk", in_stock=3, category_id=category["id"]
    )
    fetched = client.get(f"/api/products/{product['id']}").json()
    for field, value in {
        "name": "Desk", "price": 250.0, "description": "Oak desk", "in_stock": 3, "category_id": category["id"]
    }.items():
        assert fetched[field] == value


def test_create_requires_name_and_price(client):
    assert client.post("/api/products", json={"name": "Chair"}).status_code == 400
    assert client.post("/api/products", json={"price": 10}).status_code == 400
    assert client.post("/api/products", json={"name": "Chair", "price": -1}).status_code == 400


def test_create_rejects_unknown_fields(client):
    response = client.post("/api/products", json={"name": "Chair", "price": 1, "colour": "red"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid request"
    assert client.get("/api/products").json() == []


def test_create_with_unknown_category_is_not_found(client):
    response = client.post("/api/products", json={"name": "Chair", "price": 1, "category_id": 999})
    assert response.status_code == 404


def test_partial_update_keeps_other_fields(client):
    product = create_product(client, name="Lamp", price=20.0, description="Warm light", in_stock=5)
    response = client.put(f"/api/products/{product['id']}", json={"description": "Cold light"})
    assert response.status_code == 200
    updated = response.json()
    assert updated["description"] == "Cold light"
    assert updated["name"] == "Lamp"
    assert updated["price"] == 20.0
    assert updated["in_stock"] == 5
    assert updated["slug"] == product["slug"]


def test_fetch_returns_exactly_what_create_returned(client):
    category = create_category(client, "Furniture")
    product = create_product(client, name="Desk", price=250.0, category_id=category["id"])
    assert product["created_at"] is not None
    assert client.get(f"/api/products/{product['id']}").json() == product
    assert client.get("/api/products").json() == [product]


@pytest.mark.parametrize("body", [
    '{"name": "Inf", "price": 1e999}',
    '{"name": "Inf", "price": -1e999}',
    '{"name": "NaN", "price": NaN}',
])
def test_non_finite_price_is_bad_request(client, body):
    response = client.post("/api/products", content=body, headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert client.get("/api/products").json() == []


def test_update_rejects_non_finite_price(client):
    product = create_product(client)
    response = client.put(
        f"/api/products/{product['id']}", content='{"price": 1e999}', headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert client.get(f"/api/products/{product['id']}").json()["price"] == product["price"]


def test_update_rejects_null_required_fields(client):
    product = create_product(client)
    assert client.put(f"/api/products/{product['id']}", json={"name": None}).status_code == 400
    assert client.put(f"/api/products/{product['id']}", json={"price": None}).status_code == 400


def test_update_and_delete_unknown_product(client):
    assert client.put("/api/products/999", json={"price": 1}).status_code == 404
    assert client.delete("/api/products/999").status_code == 404


def test_non_integer_id_is_bad_request(client):
    assert client.get("/api/products/abc").status_code == 400


def test_slug_generated_from_name_and_kept_unique(client):
    first = create_product(client, name="Office Chair")
    second = create_product(client, name="Office Chair")
    assert first["slug"] == "office-chair"
    assert second["slug"] == f"office-chair-{second['id']}"


def test_explicit_duplicate_slug_conflicts(client):
    create_product(client, name="Chair", slug="the-chair")
    response = client.post("/api/products", json={"name": "Other", "price": 1, "slug": "The Chair"})
    assert response.status_code == 409


def test_list_sort_filter_and_page(client):
    laptops = create_category(client, "Laptops")
    create_product(client, name="Beta", price=30.0, category_id=laptops["id"])
    create_product(client, name="Alpha", price=10.0)
    create_product(client, name="Gamma", price=20.0, category_id=laptops["id"])

    names = [p["name"] for p in client.get("/api/products").json()]
    assert names == ["Beta", "Alpha", "Gamma"]

    names = [p["name"] for p in client.get("/api/products", params={"sort": "lowPrice"}).json()]
    assert names == ["Alpha", "Gamma", "Beta"]

    names = [p["name"] for p in client.get("/api/products", params={"sort": "titleDesc"}).json()]
    assert names == ["Gamma", "Beta", "Alpha"]

    names = [p["name"] for p in client.get("/api/products", params={"category": laptops["id"]}).json()]
    assert names == ["Beta", "Gamma"]

    # PAGE_SIZE is 2 in the test settings
    assert len(client.get("/api/products", params={"page": 1}).json()) == 2
    assert [p["name"] for p in client.get("/api/products", params={"page": 2}).json()] == ["Gamma"]

    assert client.get("/api/products", params={"sort": "random"}).status_code == 400
    assert client.get("/api/products", params={"page": 0}).status_code == 400


def test_delete_product_on_an_order_conflicts(client):
    user = create_user(client)
    product = create_product(client)
    response = client.post(
        "/api/orders", json={"user_id": user["id"], "items": [{"product_id": product["id"], "quantity": 1}]}
    )
    assert response.status_code == 201

    response = client.delete(f"/api/products/{product['id']}")
    assert response.status_code == 409
    assert client.get(f"/api/products/{product['id']}").status_code == 200

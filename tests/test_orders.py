import pytest

from tests.conftest import create_product, create_user


@pytest.fixture
def shop(client):
    return {
        "user": create_user(client),
        "mouse": create_product(client, name="Mouse", price=10.0),
        "pad": create_product(client, name="Mouse Pad", price=2.5),
    }


def place_order(client, user_id, items, **fields):
    return client.post("/api/orders", json={"user_id": user_id, "items": items, **fields})


def test_create_order_with_line_items(client, shop):
    response = place_order(
        client,
        shop["user"]["id"],
        [
            {"product_id": shop["mouse"]["id"], "quantity": 2},
            {"product_id": shop["pad"]["id"], "quantity": 4},
            {"product_id": shop["mouse"]["id"], "quantity": 1},
        ],
        notes="Leave at the door",
    )
    assert response.status_code == 201
    order = response.json()
    assert order["status"] == "processing"
    assert order["notes"] == "Leave at the door"
    assert order["total"] == 40.0
    quantities = {item["product_id"]: item["quantity"] for item in order["items"]}
    assert quantities == {shop["mouse"]["id"]: 3, shop["pad"]["id"]: 4}

    assert client.get(f"/api/orders/{order['id']}").json() == order


def test_order_creation_is_all_or_nothing(client, shop):
    response = place_order(
        client,
        shop["user"]["id"],
        [{"product_id": shop["mouse"]["id"], "quantity": 1}, {"product_id": 999, "quantity": 1}],
    )
    assert response.status_code == 404
    assert client.get("/api/orders").json() == []
    assert client.get("/api/order-product").json() == []


def test_order_requires_items_and_known_user(client, shop):
    assert place_order(client, shop["user"]["id"], []).status_code == 400
    assert place_order(client, 999, [{"product_id": shop["mouse"]["id"]}]).status_code == 404
    assert place_order(client, shop["user"]["id"], [{"product_id": shop["mouse"]["id"], "quantity": 0}]).status_code == 400
    assert client.get("/api/orders").json() == []


def test_line_price_is_captured_at_order_time(client, shop):
    order = place_order(client, shop["user"]["id"], [{"product_id": shop["mouse"]["id"], "quantity": 2}]).json()
    client.put(f"/api/products/{shop['mouse']['id']}", json={"price": 99.0})

    fetched = client.get(f"/api/orders/{order['id']}").json()
    assert fetched["items"][0]["unit_price"] == 10.0
    assert fetched["total"] == 20.0


def test_update_order_is_partial(client, shop):
    order = place_order(client, shop["user"]["id"], [{"product_id": shop["mouse"]["id"]}], notes="Gift").json()

    response = client.put(f"/api/orders/{order['id']}", json={"status": "shipped"})
    assert response.status_code == 200
    assert response.json()["status"] == "shipped"
    assert response.json()["notes"] == "Gift"
    assert response.json()["items"] == order["items"]

    assert client.put(f"/api/orders/{order['id']}", json={"status": "lost"}).status_code == 400
    assert client.put(f"/api/orders/{order['id']}", json={"status": None}).status_code == 400
    assert client.put("/api/orders/999", json={"status": "shipped"}).status_code == 404


def test_delete_order_removes_line_items(client, shop):
    order = place_order(client, shop["user"]["id"], [{"product_id": shop["mouse"]["id"]}]).json()
    assert client.delete(f"/api/orders/{order['id']}").status_code == 200
    assert client.get(f"/api/orders/{order['id']}").status_code == 404
    assert client.get("/api/order-product").json() == []
    # The product is free to go once no order references it
    assert client.delete(f"/api/products/{shop['mouse']['id']}").status_code == 200


def test_orders_for_user(client, shop):
    first = place_order(client, shop["user"]["id"], [{"product_id": shop["mouse"]["id"]}]).json()
    second = place_order(client, shop["user"]["id"], [{"product_id": shop["pad"]["id"]}]).json()
    other = create_user(client, email="john@example.com")
    place_order(client, other["id"], [{"product_id": shop["pad"]["id"]}])

    ids = [o["id"] for o in client.get(f"/api/orders/user/{shop['user']['id']}").json()]
    assert sorted(ids) == sorted([first["id"], second["id"]])
    assert client.get("/api/orders/user/999").status_code == 404


def test_order_product_lines(client, shop):
    order = place_order(client, shop["user"]["id"], [{"product_id": shop["mouse"]["id"]}]).json()

    response = client.post(
        "/api/order-product", json={"order_id": order["id"], "product_id": shop["pad"]["id"], "quantity": 3}
    )
    assert response.status_code == 201
    line = response.json()
    assert line["unit_price"] == 2.5

    lines = client.get(f"/api/order-product/{order['id']}").json()
    assert [l["product_id"] for l in lines] == [shop["mouse"]["id"], shop["pad"]["id"]]
    assert client.get(f"/api/orders/{order['id']}").json()["total"] == 10.0 + 7.5

    duplicate = client.post("/api/order-product", json={"order_id": order["id"], "product_id": shop["pad"]["id"]})
    assert duplicate.status_code == 409

    response = client.put(f"/api/order-product/{line['id']}", json={"quantity": 5})
    assert response.status_code == 200
    assert response.json()["quantity"] == 5

    assert client.delete(f"/api/order-product/{line['id']}").status_code == 200
    assert client.delete(f"/api/order-product/{line['id']}").status_code == 404
    assert len(client.get(f"/api/order-product/{order['id']}").json()) == 1


def test_order_product_unknown_references(client, shop):
    order = place_order(client, shop["user"]["id"], [{"product_id": shop["mouse"]["id"]}]).json()
    assert client.post("/api/order-product", json={"order_id": 999, "product_id": shop["pad"]["id"]}).status_code == 404
    assert client.post("/api/order-product", json={"order_id": order["id"], "product_id": 999}).status_code == 404
    assert client.get("/api/order-product/999").status_code == 404
    assert client.put("/api/order-product/999", json={"quantity": 1}).status_code == 404


def test_last_order_line_cannot_be_deleted(client, shop):
    order = place_order(client, shop["user"]["id"], [{"product_id": shop["mouse"]["id"]}]).json()
    line_id = order["items"][0]["id"]

    response = client.delete(f"/api/order-product/{line_id}")
    assert response.status_code == 409
    assert client.get(f"/api/orders/{order['id']}").json()["items"] == order["items"]

    assert client.delete(f"/api/orders/{order['id']}").status_code == 200
    assert client.get("/api/order-product").json() == []

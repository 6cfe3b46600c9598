from storefront.api import admin as admin_api
from storefront.db import models


def new_product(client, headers, **overrides):
    body = {"name": "Oat Latte", "price_cents": 550, "stock": 12, "category": "Coffee", "brand": "Roastery",
            "sizes": ["12oz", "16oz"], "available_sizes": ["12oz"]}
    body.update(overrides)
    resp = client.post("/admin/v1/products", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_admin_routes_require_admin(client, auth_headers):
    assert client.get("/admin/v1/orders", headers=auth_headers).status_code == 403
    assert client.get("/admin/v1/orders").status_code == 401


def test_create_and_update_product(client, admin_headers):
    p = new_product(client, admin_headers)
    assert p["available_for_purchase"] is True
    assert p["low_stock"] is False

    resp = client.patch(f"/admin/v1/products/{p['id']}", json={"stock": 3, "price_cents": 600}, headers=admin_headers)
    updated = resp.json()
    assert (updated["stock"], updated["price_cents"], updated["low_stock"]) == (3, 600, True)


def test_negative_stock_is_rejected(client, admin_headers):
    p = new_product(client, admin_headers)
    assert client.patch(f"/admin/v1/products/{p['id']}", json={"stock": -1}, headers=admin_headers).status_code == 422


def test_delete_product_referenced_by_orders_needs_force(client, admin_headers, auth_headers, shipping, make_product, add_to_cart):
    p = make_product(stock=5)
    add_to_cart(p, quantity=1)
    client.post("/v1/orders/checkout", json={"shipping": shipping}, headers=auth_headers)

    resp = client.delete(f"/admin/v1/products/{p.id}", headers=admin_headers)
    assert resp.status_code == 409

    assert client.delete(f"/admin/v1/products/{p.id}?force=true", headers=admin_headers).status_code == 204
    assert client.get(f"/v1/products/{p.id}").status_code == 404
    assert client.get(f"/admin/v1/products/{p.id}", headers=admin_headers).json()["status"] == "deleted"
    order = client.get("/v1/orders/", headers=auth_headers).json()[0]
    assert order["items"][0]["product_name"] == "Cold Brew"


def test_delete_unreferenced_product(client, admin_headers, db):
    p = new_product(client, admin_headers)
    assert client.delete(f"/admin/v1/products/{p['id']}", headers=admin_headers).status_code == 204
    db.expire_all()
    assert db.get(models.Product, p["id"]) is None


def test_product_filters(client, admin_headers, make_product):
    make_product(name="Espresso", category="Coffee")
    make_product(name="Green Tea", category="Tea", status="inactive")
    names = [p["name"] for p in client.get("/admin/v1/products?category=Tea", headers=admin_headers).json()]
    assert names == ["Green Tea"]
    names = [p["name"] for p in client.get("/admin/v1/products?status=active&q=esp", headers=admin_headers).json()]
    assert names == ["Espresso"]


def test_upload_product_image(client, admin_headers, monkeypatch):
    calls = []

    def fake_upload(bucket, prefix, data, content_type, ext=""):
        calls.append((bucket, prefix, data, content_type, ext))
        return "products/abc.png", "http://minio.test/product-images/products/abc.png"

    monkeypatch.setattr(admin_api, "upload_bytes", fake_upload)
    p = new_product(client, admin_headers)
    resp = client.post(f"/admin/v1/products/{p['id']}/image", files={"file": ("shot.PNG", b"png-bytes", "image/png")},
                       headers=admin_headers)
    assert resp.json()["image_url"] == "http://minio.test/product-images/products/abc.png"
    assert calls == [("product-images", "products", b"png-bytes", "image/png", ".png")]


def test_order_management(client, admin_headers, auth_headers, shipping, good_card, make_product, add_to_cart, db):
    add_to_cart(make_product(stock=5), quantity=1)
    order = client.post("/v1/orders/checkout", json={"shipping": shipping, "payment_method": "card", "card": good_card},
                        headers=auth_headers).json()

    listed = client.get("/admin/v1/orders?status=processing", headers=admin_headers).json()
    assert [o["id"] for o in listed] == [order["id"]]
    assert client.get("/admin/v1/orders?status=pending", headers=admin_headers).json() == []
    assert len(client.get(f"/admin/v1/orders?search={order['order_number'][-5:]}", headers=admin_headers).json()) == 1
    assert len(client.get("/admin/v1/orders?search=lovelace", headers=admin_headers).json()) == 1
    assert client.get("/admin/v1/orders?search=nobody", headers=admin_headers).json() == []

    resp = client.patch(f"/admin/v1/orders/{order['id']}/payment-status", json={"payment_status": "refunded"}, headers=admin_headers)
    assert resp.json()["payment_status"] == "refunded"
    resp = client.patch(f"/admin/v1/orders/{order['id']}/status", json={"status": "bogus"}, headers=admin_headers)
    assert resp.status_code == 422

    assert client.get(f"/v1/orders/{order['id']}", headers=admin_headers).status_code == 200

    assert client.delete(f"/admin/v1/orders/{order['id']}", headers=admin_headers).status_code == 204
    db.expire_all()
    assert db.query(models.Order).count() == 0
    assert db.query(models.OrderItem).count() == 0
    assert db.query(models.Payment).count() == 0


def test_stats(client, admin_headers, auth_headers, shipping, good_card, make_product, add_to_cart):
    p = make_product(price_cents=1000, stock=5)
    make_product(name="Hidden", status="inactive")
    add_to_cart(p, quantity=2)
    first = client.post("/v1/orders/checkout", json={"shipping": shipping, "payment_method": "card", "card": good_card},
                        headers=auth_headers).json()
    add_to_cart(p, quantity=1)
    second = client.post("/v1/orders/checkout", json={"shipping": shipping, "payment_method": "card", "card": good_card},
                         headers=auth_headers).json()
    client.post(f"/v1/orders/{second['id']}/cancel", headers=auth_headers)

    stats = client.get("/admin/v1/stats", headers=admin_headers).json()
    assert stats["total_orders"] == 2
    assert stats["processing_orders"] == 1
    assert stats["revenue_cents"] == first["total_cents"]
    assert stats["products_by_status"] == {"active": 1, "inactive": 1}


def test_list_users(client, admin_headers, user):
    emails = sorted(u["email"] for u in client.get("/admin/v1/users", headers=admin_headers).json())
    assert emails == ["ada@example.com", "admin@example.com"]

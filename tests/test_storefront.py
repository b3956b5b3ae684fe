import json
import os


def _find(catalog, title):
    for category, products in catalog.items():
        for p in products:
            if p.get("title") == title:
                return category, p
    return None, None


def test_seeded_catalog(storefront):
    r = storefront.get("/api/products/all")
    assert r.status_code == 200
    catalog = r.json()
    assert set(catalog) >= {"manga", "tcg", "libri", "funkoPop"}
    assert catalog["manga"][0]["id"] == 101


def test_get_product_by_category_and_id(storefront):
    r = storefront.get("/api/products/manga/101")
    assert r.status_code == 200
    assert r.json()["title"] == "Jujutsu Kaisen Vol. 1"

    r = storefront.get("/api/products/manga/999")
    assert r.status_code == 404
    assert "error" in r.json()

    r = storefront.get("/api/products/unknown/101")
    assert r.status_code == 404


def test_create_requires_category(storefront):
    r = storefront.post("/api/products", json={"title": "Orphan", "price": "5,00€"})
    assert r.status_code == 400
    assert r.json()["error"] == "Category is required."


def test_create_appends_to_category(storefront):
    r = storefront.post("/api/products", json={
        "title": "Booster Pack",
        "price": "4,50€",
        "category": "tcg",
        "mainImageUrl": "https://example.com/b.png",
    })
    assert r.status_code == 201
    assert "message" in r.json()

    catalog = storefront.get("/api/products/all").json()
    category, product = _find(catalog, "Booster Pack")
    assert category == "tcg"
    assert "category" not in product
    assert isinstance(product["id"], int)

    r = storefront.get(f"/api/products/tcg/{product['id']}")
    assert r.json()["title"] == "Booster Pack"


def test_create_new_category_bucket(storefront):
    r = storefront.post("/api/products", json={"title": "Dice", "category": "accessori"})
    assert r.status_code == 201
    assert "accessori" in storefront.get("/api/products/all").json()


def test_delete_product(storefront):
    storefront.post("/api/products", json={"title": "Gone Soon", "category": "libri"})
    _, product = _find(storefront.get("/api/products/all").json(), "Gone Soon")

    r = storefront.delete(f"/api/products/libri/{product['id']}")
    assert r.status_code == 200

    assert storefront.get(f"/api/products/libri/{product['id']}").status_code == 404
    assert _find(storefront.get("/api/products/all").json(), "Gone Soon") == (None, None)

    assert storefront.delete(f"/api/products/libri/{product['id']}").status_code == 404
    assert storefront.delete("/api/products/nowhere/1").status_code == 404


def test_corrupt_catalog_is_500(storefront, store):
    with open(store.path("products"), "w") as fh:
        fh.write("{not json")
    r = storefront.get("/api/products/all")
    assert r.status_code == 500
    assert "error" in r.json()


def test_duplicate_booking_allowed(storefront):
    booking = {"tableId": 5, "date": "2025-01-01", "time": "19:00", "name": "Luca"}
    assert storefront.post("/api/bookings/add", json=booking).status_code == 201
    assert storefront.post("/api/bookings/add", json=booking).status_code == 201

    listed = storefront.get("/api/bookings/available").json()
    assert listed == [booking, booking]


def test_expired_booking_still_listed(storefront):
    past = {"tableId": 2, "date": "2000-01-01", "time": "18:00", "endTime": "19:00"}
    storefront.post("/api/bookings/add", json=past)
    assert past in storefront.get("/api/bookings/available").json()


def test_cancel_booking(storefront):
    storefront.post("/api/bookings/add", json={"tableId": 3, "date": "2025-02-02", "time": "20:30"})

    r = storefront.delete("/api/bookings/cancel/3/2025-02-02/20:30")
    assert r.status_code == 200
    assert storefront.get("/api/bookings/available").json() == []

    r = storefront.delete("/api/bookings/cancel/3/2025-02-02/20:30")
    assert r.status_code == 404


def test_checkout_without_cart(storefront, store):
    r = storefront.post("/api/cart/checkout/u1")
    assert r.status_code == 200
    assert storefront.get("/api/cart/u1").json() == {"items": []}
    assert os.path.exists(store.path("carts/u1"))


def test_get_missing_cart_is_not_persisted(storefront, store):
    assert storefront.get("/api/cart/nobody").json() == {"items": []}
    assert not os.path.exists(store.path("carts/nobody"))


def test_cart_save_replaces(storefront, store):
    first = {"items": [{"id": 101, "qty": 1}, {"id": 7, "qty": 2}], "note": "gift"}
    second = {"items": [{"id": 7, "qty": 1}]}

    storefront.post("/api/cart/u2", json=first)
    assert storefront.get("/api/cart/u2").json() == first

    storefront.post("/api/cart/u2", json=second)
    assert storefront.get("/api/cart/u2").json() == second

    with open(store.path("carts/u2")) as fh:
        assert json.load(fh) == second


def test_numeric_fields_kept_verbatim(storefront):
    body = {"title": 9, "price": 12, "category": "libri", "additionalImages": [{"url": "a"}]}
    assert storefront.post("/api/products", json=body).status_code == 201

    stored = storefront.get("/api/products/all").json()["libri"][-1]
    assert stored["title"] == 9
    assert isinstance(stored["price"], int)
    assert stored["additionalImages"] == [{"url": "a"}]
    assert "category" not in stored

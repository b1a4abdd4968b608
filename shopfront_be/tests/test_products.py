from app.models.collection import ProductCollection
from app.models.product import Product, ProductImage, ProductVariant


def members(db, product_id):
    db.expire_all()
    rows = db.query(ProductCollection.collection_id).filter(ProductCollection.product_id == product_id).all()
    return {r[0] for r in rows}


def test_create_product_with_relations(client, db, admin_headers, make_collection):
    root = make_collection("Root")
    child = make_collection("Child", parent=root)
    payload = {
        "title": "Linen Shirt",
        "price": 49.5,
        "brand": "Acme",
        "category": "Shirts",
        "variants": [{"size": "M", "color": "White"}, {"size": "L", "color": "Blue", "price": 55}],
        "images": [
            {"src": "/product-images/a.jpg", "is_primary": True},
            {"src": "blob:http://localhost/123"},
            {"src": ""},
        ],
        "collections": [child.id],
    }
    resp = client.post("/api/products/", json=payload, headers=admin_headers)
    assert resp.status_code == 201
    body = resp.json()
    product = body["product"]
    assert product["slug"] == f"linen-shirt-{product['id']}"
    assert product["meta_title"] == "Linen Shirt"
    assert len(product["variants"]) == 2
    assert [i["src"] for i in product["images"]] == ["/product-images/a.jpg"]
    assert body["collections"] == sorted([root.id, child.id])
    assert members(db, product["id"]) == {root.id, child.id}


def test_create_requires_admin(client, customer_headers):
    resp = client.post("/api/products/", json={"title": "X", "price": 1}, headers=customer_headers)
    assert resp.status_code == 403


def test_get_product(client, make_collection, make_product):
    make_collection("Shoes")
    product = make_product("Boot")
    body = client.get(f"/api/products/{product.id}").json()
    assert body["product"]["title"] == "Boot"
    assert body["productCollections"] == []
    assert [c["name"] for c in body["allCollections"]] == ["Shoes"]
    assert client.get("/api/products/999").status_code == 404


def test_update_product(client, db, admin_headers, make_product):
    product = make_product("Old", variants=[{"color": "Red"}], images=["/product-images/old.jpg", "/product-images/keep.jpg"])
    keep_id = [i.id for i in product.images if i.src.endswith("keep.jpg")][0]

    resp = client.put(
        f"/api/products/{product.id}",
        json={
            "title": "New Title",
            "price": 20,
            "variants": [{"color": "Green"}, {"color": "Blue"}],
            "images": [{"id": keep_id, "src": "/product-images/keep.jpg"}, {"src": "/product-images/new.jpg"}],
        },
        headers=admin_headers,
    )
    assert resp.status_code == 200
    out = resp.json()["product"]
    assert out["slug"] == f"new-title-{product.id}"
    assert out["price"] == 20
    assert sorted(v["color"] for v in out["variants"]) == ["Blue", "Green"]
    assert sorted(i["src"] for i in out["images"]) == ["/product-images/keep.jpg", "/product-images/new.jpg"]
    db.expire_all()
    assert db.query(ProductVariant).count() == 2


def test_update_collections_replaces_membership(client, db, admin_headers, make_collection, make_product):
    root = make_collection("Root")
    child = make_collection("Child", parent=root)
    other = make_collection("Other")
    product = make_product()
    db.add(ProductCollection(product_id=product.id, collection_id=other.id))
    db.commit()

    resp = client.put(f"/api/products/{product.id}/collections", json={"collections": [child.id]}, headers=admin_headers)
    assert resp.status_code == 200
    assert members(db, product.id) == {root.id, child.id}
    assert client.put("/api/products/999/collections", json={"collections": []}, headers=admin_headers).status_code == 404


def test_add_variants(client, admin_headers, make_product):
    product = make_product()
    resp = client.post(f"/api/products/{product.id}/variants", json={"variants": [{"size": "XL"}]}, headers=admin_headers)
    assert resp.status_code == 201
    assert resp.json()["product"]["variants"][0]["size"] == "XL"


def test_delete_product_cascades(client, db, admin_headers, make_collection, make_product):
    shoes = make_collection("Shoes")
    product = make_product(variants=[{"color": "Red"}], images=["/product-images/x.jpg"])
    db.add(ProductCollection(product_id=product.id, collection_id=shoes.id))
    db.commit()

    assert client.delete(f"/api/products/{product.id}", headers=admin_headers).status_code == 200
    db.expire_all()
    assert db.query(Product).count() == 0
    assert db.query(ProductVariant).count() == 0
    assert db.query(ProductImage).count() == 0
    assert db.query(ProductCollection).count() == 0
    assert client.delete(f"/api/products/{product.id}", headers=admin_headers).status_code == 404


def test_listing_pagination_and_filters(client, db, make_collection, make_product):
    shoes = make_collection("Shoes")
    for i in range(5):
        make_product(f"Item {i}", price=10 + i, category="Shoes" if i % 2 == 0 else "Bags", variants=[{"size": str(i)}])
    first = db.query(Product).filter(Product.title == "Item 0").first()
    db.add(ProductCollection(product_id=first.id, collection_id=shoes.id))
    db.commit()

    body = client.get("/api/products/", params={"limit": 2, "page": 1}).json()["products"]
    assert body["total"] == 5
    assert body["totalPages"] == 3
    assert body["hasMore"] is True
    assert len(body["items"]) == 2

    shoes_only = client.get("/api/products/", params={"category": "shoes"}).json()["products"]
    assert shoes_only["total"] == 3

    by_price = client.get("/api/products/", params={"sort": "price", "direction": "desc", "all": "true"}).json()
    assert [p["title"] for p in by_price["products"]["items"]][0] == "Item 4"
    assert by_price["products"]["hasMore"] is False

    by_collection = client.get("/api/products/", params={"collection": "shoes"}).json()["products"]
    assert [p["title"] for p in by_collection["items"]] == ["Item 0"]

    by_size = client.get("/api/products/", params={"sizes": "1,3"}).json()["products"]
    assert by_size["total"] == 2

    search = client.get("/api/products/", params={"search": "item 2"}).json()["products"]
    assert [p["title"] for p in search["items"]] == ["Item 2"]


def test_distinct_value_endpoints(client, make_product):
    make_product("A", brand="Zed", category="Shoes", variants=[{"color": "Red"}])
    make_product("B", brand="Acme", category="Bags", variants=[{"color": "Blue"}])
    assert client.get("/api/products/categories").json() == ["Bags", "Shoes"]
    assert client.get("/api/products/brands").json() == ["Acme", "Zed"]
    assert client.get("/api/products/colors").json() == {"colors": ["Blue", "Red"]}
    assert client.get("/api/products/colors", params={"type": "shoes"}).json() == {"colors": ["Red"]}


def test_search_treats_wildcards_literally(client, make_product):
    make_product("Plain Shirt")
    make_product("100% Cotton Tee")
    assert client.get("/api/products/", params={"search": "%"}).json()["products"]["total"] == 1
    assert client.get("/api/products/", params={"search": "_"}).json()["products"]["total"] == 0

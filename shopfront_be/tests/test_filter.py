import pytest

from app.models.collection import ProductCollection


@pytest.fixture
def catalogue(db, make_collection, make_product):
    women = make_collection("Women")
    dresses = make_collection("Dresses", parent=women)
    accessories = make_collection("Accessories")

    summer = make_product("Summer Dress", price=40, brand="Zara", variants=[{"color": "Red", "size": "M"}], is_new=True)
    evening = make_product("Evening Dress", price=120, brand="Mango", variants=[{"color": "Black", "size": "S"}])
    bag = make_product("Tote Bag", price=60, brand="zara", variants=[{"color": "red", "size": "One"}], is_sale=True)
    legacy = make_product("Legacy Scarf", price=15, brand="Other", category="Women")

    db.add_all([
        ProductCollection(product_id=summer.id, collection_id=dresses.id),
        ProductCollection(product_id=evening.id, collection_id=dresses.id),
        ProductCollection(product_id=bag.id, collection_id=accessories.id),
    ])
    db.commit()
    return {"summer": summer, "evening": evening, "bag": bag, "legacy": legacy}


def titles(resp):
    return [p["title"] for p in resp.json()["products"]]


def test_no_filters_returns_everything_sorted_by_title(client, catalogue):
    resp = client.get("/api/filter/products")
    body = resp.json()
    assert body["totalCount"] == 4
    assert body["pageSize"] == 8
    assert titles(resp) == ["Evening Dress", "Legacy Scarf", "Summer Dress", "Tote Bag"]


def test_category_matches_collection_name(client, catalogue):
    resp = client.get("/api/filter/products", params={"category": "dresses"})
    assert sorted(titles(resp)) == ["Evening Dress", "Summer Dress"]


def test_category_matches_parent_collection_and_product_column(client, catalogue):
    resp = client.get("/api/filter/products", params={"product_category": "Women"})
    assert sorted(titles(resp)) == ["Evening Dress", "Legacy Scarf", "Summer Dress"]
    assert resp.json()["totalCount"] == 3


def test_category_prefix_match_both_directions(client, catalogue):
    assert sorted(titles(client.get("/api/filter/products", params={"category": "dress"}))) == [
        "Evening Dress",
        "Summer Dress",
    ]
    assert titles(client.get("/api/filter/products", params={"category": "accessories & more"})) == ["Tote Bag"]


def test_all_disables_category(client, catalogue):
    assert client.get("/api/filter/products", params={"category": "ALL"}).json()["totalCount"] == 4


def test_brand_list_is_case_insensitive(client, catalogue):
    resp = client.get("/api/filter/products", params={"brand": "ZARA,mango"})
    assert sorted(titles(resp)) == ["Evening Dress", "Summer Dress", "Tote Bag"]


def test_color_matches_variants(client, catalogue):
    resp = client.get("/api/filter/products", params={"color": "RED"})
    assert sorted(titles(resp)) == ["Summer Dress", "Tote Bag"]


def test_price_range_and_flags(client, catalogue):
    resp = client.get("/api/filter/products", params={"min_price": 30, "max_price": 100})
    assert sorted(titles(resp)) == ["Summer Dress", "Tote Bag"]
    assert titles(client.get("/api/filter/products", params={"is_new": "true"})) == ["Summer Dress"]
    assert titles(client.get("/api/filter/products", params={"is_sale": "true"})) == ["Tote Bag"]


def test_sorting(client, catalogue):
    high = titles(client.get("/api/filter/products", params={"sort_by": "HIGH_TO_LOW"}))
    assert high == ["Evening Dress", "Tote Bag", "Summer Dress", "Legacy Scarf"]
    desc = titles(client.get("/api/filter/products", params={"sort_by": "DESC_ORDER"}))
    assert desc == ["Tote Bag", "Summer Dress", "Legacy Scarf", "Evening Dress"]


def test_count_is_exact_across_pages(client, catalogue):
    page1 = client.get("/api/filter/products", params={"category": "Women", "limit": 2, "page": 1}).json()
    page2 = client.get("/api/filter/products", params={"category": "Women", "limit": 2, "page": 2}).json()
    assert page1["totalCount"] == page2["totalCount"] == 3
    assert page1["totalPages"] == 2
    assert len(page1["products"]) == 2
    assert len(page2["products"]) == 1


def test_empty_result_still_has_one_page(client, catalogue):
    body = client.get("/api/filter/products", params={"brand": "Nobody"}).json()
    assert body["totalCount"] == 0
    assert body["totalPages"] == 1


def test_product_payload_shape(client, catalogue):
    product = client.get("/api/filter/products", params={"is_new": "true"}).json()["products"][0]
    assert product["new"] is True
    assert product["variants"][0]["color"] == "Red"
    assert product["collections"][0]["name"] == "Dresses"


def test_filter_option_lists(client, catalogue):
    assert client.get("/api/filter/categories").json() == ["ALL", "Women"]
    assert client.get("/api/filter/brands", params={"category": "dresses"}).json() == ["Mango", "Zara"]
    assert client.get("/api/filter/colors", params={"category": "dresses"}).json() == ["Black", "Red"]
    assert client.get("/api/filter/colors", params={"brand": "mango"}).json() == ["Black"]


def test_like_wildcards_in_category_are_literal(client, catalogue):
    assert client.get("/api/filter/products", params={"category": "%"}).json()["totalCount"] == 0
    assert client.get("/api/filter/products", params={"category": "_"}).json()["totalCount"] == 0
    assert client.get("/api/filter/products", params={"category": "d_esses"}).json()["totalCount"] == 0

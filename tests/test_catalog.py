import pytest

import catalog
from errors import TooManyImages, UnknownCategory, UnknownSubcategory
from schemas import TAXONOMY


@pytest.mark.parametrize("raw", ["Office Stationaries", "  office   stationaries ", "OFFICE STATIONARIES"])
def test_resolve_category_ignores_case_and_whitespace(raw):
    assert catalog.resolve_category(raw, " notebooks & PAPERS") == ("Office Stationaries", "Notebooks & Papers")


def test_resolve_category_without_subcategory():
    assert catalog.resolve_category("print and demands") == ("Print and Demands", None)


def test_unknown_category_lists_valid_categories():
    with pytest.raises(UnknownCategory) as exc:
        catalog.resolve_category("Groceries")
    assert exc.value.extra["validCategories"] == list(TAXONOMY)


def test_subcategory_must_belong_to_its_category():
    with pytest.raises(UnknownSubcategory) as exc:
        catalog.resolve_category("Print and Demands", "Calculator")
    assert exc.value.extra["validSubcategories"] == TAXONOMY["Print and Demands"]


def test_list_by_category_returns_only_the_requested_pair(db, add_service):
    add_service("Ruled Notebook")
    add_service("Glue Stick", sub_category="Adhesive & Glue")
    add_service("Visiting Cards", category="Print and Demands", sub_category="Business Cards")

    found = catalog.list_by_category(db, "office stationaries", "NOTEBOOKS & papers")
    assert [s["productName"] for s in found] == ["Ruled Notebook"]

    whole = catalog.list_by_category(db, "Office Stationaries")
    assert {s["productName"] for s in whole} == {"Ruled Notebook", "Glue Stick"}


def test_create_product_stores_canonical_names(db):
    doc = catalog.create_product(
        db,
        {"productName": "Laptop Repair", "category": "it service and repairs", "subCategory": "computer & laptop repair", "price": 499},
        ["/api/services/uploads/a.png"],
    )
    assert doc["category"] == "IT Service and Repairs"
    assert doc["subCategory"] == "Computer & Laptop Repair"
    assert doc["images"] == ["/api/services/uploads/a.png"]
    assert doc["isAvailable"] is True


def test_create_product_rejects_more_than_six_images(db):
    with pytest.raises(TooManyImages):
        catalog.create_product(
            db,
            {"productName": "Poster", "category": "Print and Demands", "subCategory": "Banners & Posters", "price": 10},
            [f"/api/services/uploads/{i}.png" for i in range(7)],
        )
    assert db["service"].count_documents({}) == 0


def test_create_product_requires_subcategory(db):
    with pytest.raises(UnknownSubcategory):
        catalog.create_product(db, {"productName": "Pen", "category": "Office Stationaries", "price": 10})


@pytest.mark.parametrize("sub", [None, "", "   "])
def test_product_category_needs_a_subcategory(sub):
    with pytest.raises(UnknownSubcategory) as exc:
        catalog.resolve_product_category("print and demands", sub)
    assert exc.value.extra["validSubcategories"] == TAXONOMY["Print and Demands"]


def test_product_ratings_average_reviews(db, add_service):
    service = add_service(rating=4, reviews=[{"rating": 5}, {"rating": 4}, {"rating": 2}])
    assert catalog.product_ratings(db, str(service["_id"])) == {"averageRating": 3.67, "totalReviews": 3}


def test_product_ratings_fall_back_to_stored_rating(db, add_service):
    service = add_service(rating=4.5)
    assert catalog.product_ratings(db, str(service["_id"])) == {"averageRating": 4.5, "totalReviews": 0}


def test_search_matches_name_or_subcategory(db, add_service):
    add_service("Gel Pen Set", sub_category="Pen & Pencil Kits")
    add_service("Scientific Calculator", sub_category="Calculator")

    assert [s["productName"] for s in catalog.search(db, "gel")] == ["Gel Pen Set"]
    assert [s["productName"] for s in catalog.search(db, "CALC")] == ["Scientific Calculator"]
    assert catalog.search(db, "pen & pencil")[0]["productName"] == "Gel Pen Set"


def test_search_without_term_or_match_is_empty(db, add_service):
    add_service()
    assert catalog.search(db, "") == []
    assert catalog.search(db, None) == []
    assert catalog.search(db, "(unbalanced") == []


def test_verify_category():
    assert catalog.verify_category("office stationaries", "calculator")["isValid"] is True
    result = catalog.verify_category("Office Stationaries", "Business Cards")
    assert result["isValid"] is False
    assert result["category"] == "Office Stationaries"
    assert catalog.verify_category("Nope")["isValid"] is False


def test_update_product_revalidates_taxonomy(db, add_service):
    service = add_service()
    with pytest.raises(UnknownSubcategory):
        catalog.update_product(db, str(service["_id"]), {"subCategory": "Business Cards"})

    doc = catalog.update_product(db, str(service["_id"]), {"price": 55, "subCategory": "calculator"})
    assert doc["price"] == 55
    assert doc["subCategory"] == "Calculator"


def test_delete_product_removes_image_files(db, tmp_path):
    (tmp_path / "pic.png").write_bytes(b"\x89PNG")
    doc = catalog.create_product(
        db,
        {"productName": "Banner", "category": "Print and Demands", "subCategory": "Banners & Posters", "price": 80},
        ["/api/services/uploads/pic.png"],
    )
    catalog.delete_product(db, str(doc["_id"]), str(tmp_path))

    assert not (tmp_path / "pic.png").exists()
    assert db["service"].count_documents({}) == 0

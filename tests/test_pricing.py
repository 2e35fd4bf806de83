import pytest
from bson import ObjectId

from cart import PLATFORM_FEE, add_item, cart_counts, empty_summary, get_cart_summary, price_cart, remove_item, update_quantity
from errors import NotFound, ValidationError


def _product(price, **extra):
    return {"_id": ObjectId(), "productName": "Item", "price": price, "category": "Print and Demands", **extra}


def _line(product, quantity):
    return {"_id": ObjectId(), "productId": product["_id"], "quantity": quantity}


def test_subtotal_of_100_prices_fee_surcharge_and_gst():
    product = _product(50)
    result = price_cart([_line(product, 2)], {str(product["_id"]): product})

    assert result["summary"] == {
        "subtotal": 100,
        "platformFee": 5,
        "additionalCharge": 2.0,
        "gst": 19.26,
        "total": 126.26,
    }


def test_unresolvable_items_are_dropped():
    kept = _product(10)
    gone = _product(999)
    result = price_cart([_line(kept, 3), _line(gone, 1)], {str(kept["_id"]): kept})

    assert [i["productId"] for i in result["items"]] == [str(kept["_id"])]
    assert result["summary"]["subtotal"] == 30


def test_cart_with_only_dangling_items_still_pays_fee_and_gst():
    gone = _product(10)
    result = price_cart([_line(gone, 1)], {})

    assert result["items"] == []
    assert result["summary"] == {"subtotal": 0, "platformFee": PLATFORM_FEE, "additionalCharge": 0, "gst": 0.9, "total": 5.9}


def test_user_without_cart_gets_zero_summary(db):
    assert get_cart_summary(db, "nobody") == {"items": [], "summary": empty_summary()}


def test_rounding_happens_after_full_precision_arithmetic():
    a, b = _product(0.333), _product(0.333)
    products = {str(a["_id"]): a, str(b["_id"]): b}
    result = price_cart([_line(a, 1), _line(b, 1)], products)

    subtotal = 0.666
    additional = subtotal * 0.02
    gst = (subtotal + 5 + additional) * 0.18
    assert result["summary"]["subtotal"] == 0.67
    assert result["summary"]["total"] == round(subtotal + 5 + additional + gst, 2)


@pytest.mark.parametrize("subtotal", [1, 17.5, 250, 1999.99])
def test_total_follows_fee_inclusive_gst_formula(subtotal):
    product = _product(subtotal)
    result = price_cart([_line(product, 1)], {str(product["_id"]): product})
    expected = subtotal + 5 + 0.02 * subtotal + 0.18 * (subtotal + 5 + 0.02 * subtotal)

    assert result["summary"]["total"] == round(expected, 2)


def test_add_item_twice_accumulates_quantity(db, add_service):
    service = add_service(price=40)
    add_item(db, "u1", str(service["_id"]), 1)
    cart = add_item(db, "u1", str(service["_id"]), 1)

    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 2
    assert cart["items"][0]["category"] == "Office Stationaries"


def test_add_item_rejects_missing_product(db):
    with pytest.raises(NotFound):
        add_item(db, "u1", str(ObjectId()), 1)


def test_add_item_rejects_zero_quantity(db, add_service):
    service = add_service()
    with pytest.raises(ValidationError):
        add_item(db, "u1", str(service["_id"]), 0)


def test_summary_reads_live_price(db, add_service):
    service = add_service(price=100)
    add_item(db, "u1", str(service["_id"]), 1)
    db["service"].update_one({"_id": service["_id"]}, {"$set": {"price": 200}})

    assert get_cart_summary(db, "u1")["summary"]["subtotal"] == 200


def test_deleted_product_is_skipped_not_removed(db, add_service):
    keep, drop = add_service(price=10), add_service(product_name="Glue", price=5)
    add_item(db, "u1", str(keep["_id"]), 2)
    add_item(db, "u1", str(drop["_id"]), 1)
    db["service"].delete_one({"_id": drop["_id"]})

    summary = get_cart_summary(db, "u1")
    assert summary["summary"]["subtotal"] == 20
    assert len(db["cart"].find_one({"userId": "u1"})["items"]) == 2
    assert cart_counts(db, "u1") == {"totalItems": 2, "totalAmount": 20}


def test_update_quantity_and_remove_last_item_keeps_cart(db, add_service):
    service = add_service(price=10)
    cart = add_item(db, "u1", str(service["_id"]), 1)
    item_id = cart["items"][0]["_id"]

    summary = update_quantity(db, "u1", item_id, 5)
    assert summary["items"][0]["quantity"] == 5

    summary = remove_item(db, "u1", item_id)
    assert summary["items"] == []
    assert db["cart"].find_one({"userId": "u1"})["items"] == []


def test_emptied_cart_is_priced_with_fee_and_gst(db, add_service):
    service = add_service(price=40)
    cart = add_item(db, "u1", str(service["_id"]), 2)
    remove_item(db, "u1", cart["items"][0]["_id"])

    summary = get_cart_summary(db, "u1")["summary"]
    assert summary["subtotal"] == 0
    assert summary["platformFee"] == 5
    assert summary["gst"] == 0.9
    assert summary["total"] == 5.9


def test_update_quantity_unknown_item(db, add_service):
    service = add_service()
    add_item(db, "u1", str(service["_id"]), 1)
    with pytest.raises(NotFound):
        update_quantity(db, "u1", str(ObjectId()), 2)
    with pytest.raises(NotFound):
        remove_item(db, "someone-else", str(ObjectId()))

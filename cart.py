"""
Cart pricing and cart mutations.

Prices are read from the catalog when the cart is summarised, not when an item
is added, so price changes apply to carts that are still open. Line items whose
service no longer exists are left in the stored cart and skipped when pricing.
An existing cart is always priced with the fee, surcharge and GST; only a user
with no cart document gets the all-zero summary.
"""
import logging
from typing import Dict, Iterable, List

from bson import ObjectId

from database import now, parse_object_id, serialize_doc
from errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

PLATFORM_FEE = 5
ADDITIONAL_CHARGE_RATE = 0.02
GST_RATE = 0.18


def _money(value: float) -> float:
    return round(value, 2)


def empty_summary() -> dict:
    return {"subtotal": 0, "platformFee": PLATFORM_FEE, "additionalCharge": 0, "gst": 0, "total": 0}


def price_cart(items: Iterable[dict], products: Dict[str, dict]) -> dict:
    """Price cart line items against a {productId: service document} lookup."""
    priced: List[dict] = []
    subtotal = 0.0
    for item in items:
        product = products.get(str(item["productId"]))
        if product is None:
            continue
        price = float(product.get("price", 0))
        item_total = price * item["quantity"]
        subtotal += item_total
        priced.append({
            "_id": str(item["_id"]) if item.get("_id") else None,
            "productId": str(product["_id"]),
            "name": product.get("productName"),
            "price": price,
            "quantity": item["quantity"],
            "image": (product.get("images") or [None])[0],
            "category": product.get("category", item.get("category")),
            "itemTotal": _money(item_total),
        })

    additional_charge = subtotal * ADDITIONAL_CHARGE_RATE
    gst = (subtotal + PLATFORM_FEE + additional_charge) * GST_RATE
    total = subtotal + PLATFORM_FEE + additional_charge + gst
    return {
        "items": priced,
        "summary": {
            "subtotal": _money(subtotal),
            "platformFee": PLATFORM_FEE,
            "additionalCharge": _money(additional_charge),
            "gst": _money(gst),
            "total": _money(total),
        },
    }


def load_products(db, items: Iterable[dict]) -> Dict[str, dict]:
    ids = {item["productId"] for item in items}
    if not ids:
        return {}
    return {str(p["_id"]): p for p in db["service"].find({"_id": {"$in": list(ids)}})}


def get_cart_summary(db, user_id: str) -> dict:
    cart = db["cart"].find_one({"userId": user_id})
    if not cart:
        return {"items": [], "summary": empty_summary()}
    items = cart.get("items", [])
    return price_cart(items, load_products(db, items))


def cart_counts(db, user_id: str) -> dict:
    cart = db["cart"].find_one({"userId": user_id})
    if not cart:
        return {"totalItems": 0, "totalAmount": 0}
    items = cart.get("items", [])
    priced = price_cart(items, load_products(db, items))
    return {"totalItems": len(items), "totalAmount": priced["summary"]["subtotal"]}


def _save(db, cart: dict):
    cart["updatedAt"] = now()
    db["cart"].replace_one({"userId": cart["userId"]}, cart, upsert=True)


def add_item(db, user_id: str, product_id: str, quantity: int = 1) -> dict:
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    pid = parse_object_id(product_id, "product ID")
    product = db["service"].find_one({"_id": pid})
    if not product:
        raise NotFound("Product not found")

    cart = db["cart"].find_one({"userId": user_id}) or {"userId": user_id, "items": [], "createdAt": now()}
    for item in cart["items"]:
        if item["productId"] == pid:
            item["quantity"] += quantity
            break
    else:
        cart["items"].append({"_id": ObjectId(), "productId": pid, "quantity": quantity, "category": product["category"]})
    _save(db, cart)
    logger.info("Cart of %s: added %d x %s", user_id, quantity, product_id)
    return serialize_doc(db["cart"].find_one({"userId": user_id}))


def _find_item(db, user_id: str, item_id: str):
    cart = db["cart"].find_one({"userId": user_id})
    if not cart:
        raise NotFound("Cart not found")
    iid = parse_object_id(item_id, "item ID")
    for index, item in enumerate(cart.get("items", [])):
        if item["_id"] == iid:
            return cart, index
    raise NotFound("Item not found in cart")


def update_quantity(db, user_id: str, item_id: str, quantity: int) -> dict:
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    cart, index = _find_item(db, user_id, item_id)
    cart["items"][index]["quantity"] = quantity
    _save(db, cart)
    return get_cart_summary(db, user_id)


def remove_item(db, user_id: str, item_id: str) -> dict:
    cart, index = _find_item(db, user_id, item_id)
    del cart["items"][index]
    _save(db, cart)
    return get_cart_summary(db, user_id)

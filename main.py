import logging
import os
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pymongo.errors import PyMongoError

import auth
import cart as cart_service
import catalog
import dashboard
from auth import get_current_admin, get_current_user, public_user
from config import ADMIN_USER_ID, CORS_ORIGINS, LOG_LEVEL, PORT, UPLOAD_DIR
from database import create_document, get_db, get_documents, now, parse_object_id, serialize_doc
from errors import InternalError, NotFound, Unauthorized, register_exception_handlers
from schemas import (
    TAXONOMY,
    AddToCartBody,
    AdminLoginBody,
    LoginBody,
    Order,
    OrderUpdateBody,
    Payment,
    PaymentStatusBody,
    ProfileUpdateBody,
    RegisterBody,
    ServiceUpdateBody,
    TokenClaims,
    UpdateQuantityBody,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("boldserve")


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    try:
        auth.ensure_single_admin(get_db())
    except InternalError:
        logger.warning("Database not configured, skipping admin initialization")
    except PyMongoError:
        logger.exception("Error managing admin account")
    logger.info("BoldServe API ready, admin login at /api/admin/login")
    yield


app = FastAPI(title="BoldServe API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed)
    return response


def _get_or_404(db, collection: str, doc_id: str, label: str):
    doc = db[collection].find_one({"_id": parse_object_id(doc_id, f"{label} ID")})
    if not doc:
        raise NotFound(f"{label.capitalize()} not found")
    return doc


# ---------------------- Health ----------------------

@app.get("/")
def read_root():
    return {
        "success": True,
        "message": "BoldServe API is running successfully",
        "endpoints": {
            "admin": "/api/admin",
            "services": "/api/services",
            "cart": "/api/cart",
            "orders": "/api/orders",
            "users": "/api/users",
            "payments": "/api/payments",
        },
    }


@app.get("/test")
def test_database():
    info = {"backend": "running", "database": "disconnected"}
    try:
        info["collections"] = get_db().list_collection_names()
        info["database"] = "connected"
    except Exception as e:
        info["error"] = str(e)[:120]
    return info


# ---------------------- Users ----------------------

users = APIRouter(prefix="/api/users", tags=["users"])


@users.post("/register", status_code=status.HTTP_201_CREATED)
def register(body: RegisterBody, db=Depends(get_db)):
    token, user = auth.register_user(db, body.full_name, body.email, body.password, body.mobile)
    u = public_user(user)
    return {
        "success": True,
        "token": token,
        "user": {"id": u["id"], "fullName": u["fullName"], "email": u["email"], "mobile": u.get("mobile")},
    }


@users.post("/login")
def login(body: LoginBody, db=Depends(get_db)):
    token, user = auth.login(db, body.email, body.password)
    return {
        "success": True,
        "token": token,
        "user": {"id": str(user["_id"]), "email": user["email"], "isAdmin": bool(user.get("isAdmin"))},
    }


@users.get("/verify")
def verify_user(email: str, db=Depends(get_db)):
    return {"exists": auth.get_user_by_email(db, email) is not None}


@users.get("/profile")
def get_profile(current: TokenClaims = Depends(get_current_user), db=Depends(get_db)):
    user = _get_or_404(db, "user", current.user_id, "user")
    return {"success": True, "user": public_user(user)}


@users.post("/update-profile")
def update_profile(body: ProfileUpdateBody, current: TokenClaims = Depends(get_current_user), db=Depends(get_db)):
    user, changed = auth.update_profile(db, current.user_id, body.email, body.address, body.bio)
    return {
        "success": True,
        "message": "Profile updated successfully" if changed else "No changes to update",
        "user": public_user(user),
    }


@users.get("/count")
def count_users(_: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    return {"success": True, "count": dashboard.count_users(db)}


@users.get("")
def list_users(_: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    return {"success": True, "data": [public_user(u) for u in db["user"].find().sort("createdAt", -1)]}


# ---------------------- Admin ----------------------

admin = APIRouter(prefix="/api/admin", tags=["admin"])


@admin.post("/login")
def admin_login(body: AdminLoginBody, db=Depends(get_db)):
    token = auth.admin_login(db, body.user_id, body.password)
    return {
        "success": True,
        "token": token,
        "message": "Login successful",
        "admin": {"userId": body.user_id, "role": "admin"},
    }


@admin.get("/verify-token")
def verify_admin_token(current: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    if current.user_id != ADMIN_USER_ID or not db["admin"].find_one({"userId": current.user_id}):
        raise Unauthorized("Invalid token")
    return {"success": True, "user": {"userId": current.user_id, "role": "admin"}}


@admin.post("/logout")
def admin_logout():
    # tokens are stateless; the client drops its copy
    return {"success": True, "message": "Logged out successfully"}


@admin.get("/dashboard")
def admin_dashboard(_: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    return {"success": True, "data": dashboard.stats(db)}


@admin.get("/users")
def admin_users(_: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    found = db["user"].find({"isAdmin": {"$ne": True}}).sort("createdAt", -1)
    return {"success": True, "data": [public_user(u) for u in found]}


@admin.get("/check-user/{user_id}")
def check_user(user_id: str, _: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    _id = parse_object_id(user_id, "user ID")
    return {"success": True, "exists": db["user"].find_one({"_id": _id}, {"_id": 1}) is not None}


# ---------------------- Services ----------------------

services = APIRouter(prefix="/api/services", tags=["services"])


@services.get("")
def list_services(
    category: Optional[str] = None,
    sub_category: Optional[str] = Query(None, alias="subCategory"),
    db=Depends(get_db),
):
    data = catalog.list_by_category(db, category, sub_category) if category else catalog.list_services(db)
    return {"success": True, "data": data, "count": len(data)}


@services.get("/categories")
def list_categories():
    return {"success": True, "data": TAXONOMY}


@services.get("/subcategories/{category}")
def list_subcategories(category: str):
    canonical, _ = catalog.resolve_category(category)
    return {"success": True, "category": canonical, "data": TAXONOMY[canonical]}


@services.get("/verify-category")
def verify_category(category: Optional[str] = None, sub_category: Optional[str] = Query(None, alias="subCategory")):
    return catalog.verify_category(category, sub_category)


@services.get("/category")
def services_by_category(
    category: Optional[str] = None,
    sub_category: Optional[str] = Query(None, alias="subCategory"),
    db=Depends(get_db),
):
    data = catalog.list_by_category(db, category, sub_category)
    canonical, _ = catalog.resolve_category(category)
    if not data:
        return {"success": True, "message": "No products found", "data": [], "validSubcategories": TAXONOMY[canonical]}
    return {"success": True, "data": data, "count": len(data)}


@services.get("/search")
def search_services(query: Optional[str] = None, db=Depends(get_db)):
    if not (query or "").strip():
        return {"success": True, "data": [], "message": "Please enter a search term"}
    data = catalog.search(db, query)
    if not data:
        return {"success": True, "data": [], "message": "Product not found"}
    return {"success": True, "data": data}


@services.get("/product/ratings/{service_id}")
def service_ratings(service_id: str, db=Depends(get_db)):
    return {"success": True, "data": catalog.product_ratings(db, service_id)}


@services.post("", status_code=status.HTTP_201_CREATED)
async def create_service(
    product_name: str = Form(..., alias="productName"),
    category: str = Form(...),
    sub_category: str = Form(..., alias="subCategory"),
    price: float = Form(..., ge=0),
    description: str = Form(""),
    offers: str = Form(""),
    review: str = Form(""),
    rating: float = Form(0, ge=0, le=5),
    images: List[UploadFile] = File(default=[]),
    _: TokenClaims = Depends(get_current_admin),
    db=Depends(get_db),
):
    # taxonomy is checked before any file is written
    category, sub_category = catalog.resolve_product_category(category, sub_category)
    paths = await catalog.save_images(images, UPLOAD_DIR)
    fields = {
        "productName": product_name.strip(),
        "category": category,
        "subCategory": sub_category,
        "price": price,
        "description": description.strip(),
        "offers": offers.strip(),
        "review": review.strip(),
        "rating": rating,
    }
    doc = catalog.create_product(db, fields, paths)
    return {
        "success": True,
        "message": f"Product successfully added to {doc['subCategory']} with {len(paths)} images",
        "data": serialize_doc(doc),
    }


@services.get("/admin/products")
def admin_products(_: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    fields = {"productName": 1, "category": 1, "subCategory": 1, "price": 1, "images": 1, "createdAt": 1}
    data = [serialize_doc(p) for p in db["service"].find({}, fields).sort("createdAt", -1)]
    return {"success": True, "count": len(data), "data": data}


@services.put("/admin/products/{service_id}")
def update_service(service_id: str, body: ServiceUpdateBody, _: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    doc = catalog.update_product(db, service_id, body.model_dump(by_alias=True, exclude_none=True))
    return {"success": True, "data": serialize_doc(doc)}


@services.delete("/admin/products/{service_id}")
def delete_service(service_id: str, _: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    catalog.delete_product(db, service_id, UPLOAD_DIR)
    return {"success": True, "message": "Product deleted successfully"}


@services.get("/{service_id}")
def get_service(service_id: str, db=Depends(get_db)):
    return {"success": True, "data": serialize_doc(catalog.get_service(db, service_id))}


# ---------------------- Cart ----------------------

cart = APIRouter(prefix="/api/cart", tags=["cart"])


@cart.get("")
def get_cart(current: TokenClaims = Depends(get_current_user), db=Depends(get_db)):
    return {"success": True, "data": cart_service.get_cart_summary(db, current.user_id)}


@cart.get("/summary")
def get_cart_counts(current: TokenClaims = Depends(get_current_user), db=Depends(get_db)):
    return {"success": True, "data": cart_service.cart_counts(db, current.user_id)}


@cart.post("/add")
def add_to_cart(body: AddToCartBody, current: TokenClaims = Depends(get_current_user), db=Depends(get_db)):
    data = cart_service.add_item(db, current.user_id, body.product_id, body.quantity)
    return {"success": True, "message": "Item added to cart successfully", "data": data}


@cart.put("/item/{item_id}")
def update_cart_item(item_id: str, body: UpdateQuantityBody, current: TokenClaims = Depends(get_current_user), db=Depends(get_db)):
    data = cart_service.update_quantity(db, current.user_id, item_id, body.quantity)
    return {"success": True, "message": "Quantity updated successfully", "data": data}


@cart.delete("/item/{item_id}")
def remove_cart_item(item_id: str, current: TokenClaims = Depends(get_current_user), db=Depends(get_db)):
    data = cart_service.remove_item(db, current.user_id, item_id)
    return {"success": True, "message": "Item removed from cart successfully", "data": data}


# ---------------------- Orders ----------------------

orders = APIRouter(prefix="/api/orders", tags=["orders"])


@orders.post("", status_code=status.HTTP_201_CREATED)
def create_order(body: Order, current: TokenClaims = Depends(get_current_user), db=Depends(get_db)):
    if body.user_id is None:
        body.user_id = current.user_id
    order_id = create_document("order", body, db)
    return {"success": True, "data": serialize_doc(_get_or_404(db, "order", order_id, "order"))}


@orders.get("/count")
def count_orders(_: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    return {"success": True, "count": dashboard.count_orders(db)}


@orders.get("/status/{order_status}")
def orders_by_status(order_status: str, db=Depends(get_db)):
    return {"success": True, "data": get_documents("order", {"status": order_status}, database=db)}


@orders.get("")
def list_orders(order_status: Optional[str] = Query(None, alias="status"), db=Depends(get_db)):
    filt = {"status": order_status} if order_status else {}
    return {"success": True, "data": get_documents("order", filt, database=db)}


@orders.get("/{order_id}")
def get_order(order_id: str, db=Depends(get_db)):
    return {"success": True, "data": serialize_doc(_get_or_404(db, "order", order_id, "order"))}


@orders.put("/{order_id}")
def update_order(order_id: str, body: OrderUpdateBody, _: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    doc = _get_or_404(db, "order", order_id, "order")
    update = body.model_dump(by_alias=True, exclude_none=True)
    update["updatedAt"] = now()
    db["order"].update_one({"_id": doc["_id"]}, {"$set": update})
    return {"success": True, "data": serialize_doc(db["order"].find_one({"_id": doc["_id"]}))}


@orders.delete("/{order_id}")
def delete_order(order_id: str, _: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    doc = _get_or_404(db, "order", order_id, "order")
    db["order"].delete_one({"_id": doc["_id"]})
    return {"success": True, "message": "Order deleted successfully"}


# ---------------------- Payments ----------------------

payments = APIRouter(prefix="/api/payments", tags=["payments"])


@payments.post("", status_code=status.HTTP_201_CREATED)
def create_payment(body: Payment, current: TokenClaims = Depends(get_current_user), db=Depends(get_db)):
    if body.user_id is None:
        body.user_id = current.user_id
    payment_id = create_document("payment", body, db)
    return {"success": True, "data": serialize_doc(_get_or_404(db, "payment", payment_id, "payment"))}


@payments.get("/total-revenue")
def payments_total_revenue(_: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    return {"success": True, "totalRevenue": dashboard.total_revenue(db)}


@payments.get("")
def list_payments(db=Depends(get_db)):
    return {"success": True, "data": get_documents("payment", database=db)}


@payments.get("/{payment_id}")
def get_payment(payment_id: str, db=Depends(get_db)):
    return {"success": True, "data": serialize_doc(_get_or_404(db, "payment", payment_id, "payment"))}


@payments.put("/{payment_id}")
def update_payment(payment_id: str, body: PaymentStatusBody, _: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    doc = _get_or_404(db, "payment", payment_id, "payment")
    db["payment"].update_one({"_id": doc["_id"]}, {"$set": {"status": body.status, "updatedAt": now()}})
    return {"success": True, "data": serialize_doc(db["payment"].find_one({"_id": doc["_id"]}))}


@payments.delete("/{payment_id}")
def delete_payment(payment_id: str, _: TokenClaims = Depends(get_current_admin), db=Depends(get_db)):
    doc = _get_or_404(db, "payment", payment_id, "payment")
    db["payment"].delete_one({"_id": doc["_id"]})
    return {"success": True, "message": "Payment deleted successfully"}


app.mount("/api/services/uploads", StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")
for router in (users, admin, services, cart, orders, payments):
    app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)

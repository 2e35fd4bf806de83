"""
Catalog access: the category taxonomy, service listing/search and product images.

Category and subcategory strings are matched through a normalized key (trimmed,
inner whitespace collapsed, lowercased) that maps to the canonical spelling in
TAXONOMY. Services are always stored with the canonical spelling, so lookups are
plain equality queries.
"""
import logging
import os
import random
import re
import time
from typing import Dict, List, Optional, Tuple

from fastapi import UploadFile

from database import create_document, now, parse_object_id, serialize_doc
from errors import NotFound, TooManyImages, UnknownCategory, UnknownSubcategory, ValidationError
from schemas import MAX_IMAGES, TAXONOMY, Service

logger = logging.getLogger(__name__)

IMAGE_URL_PREFIX = "/api/services/uploads/"


def normalize(value: Optional[str]) -> str:
    return " ".join((value or "").split()).lower()


_CATEGORY_INDEX: Dict[str, Tuple[str, Dict[str, str]]] = {
    normalize(category): (category, {normalize(sub): sub for sub in subs})
    for category, subs in TAXONOMY.items()
}


def resolve_category(category: Optional[str], sub_category: Optional[str] = None) -> Tuple[str, Optional[str]]:
    """Map user input to the canonical (category, subCategory) pair."""
    entry = _CATEGORY_INDEX.get(normalize(category))
    if entry is None:
        raise UnknownCategory(extra={"validCategories": list(TAXONOMY)})
    canonical, subs = entry
    if not normalize(sub_category):
        return canonical, None
    sub = subs.get(normalize(sub_category))
    if sub is None:
        raise UnknownSubcategory(
            f"Invalid subcategory for {canonical}",
            extra={"validSubcategories": TAXONOMY[canonical]},
        )
    return canonical, sub


def resolve_product_category(category: Optional[str], sub_category: Optional[str]) -> Tuple[str, str]:
    """Like resolve_category, but a product must name its subcategory."""
    canonical, sub = resolve_category(category, sub_category)
    if sub is None:
        raise UnknownSubcategory(extra={"validSubcategories": TAXONOMY[canonical]})
    return canonical, sub


def verify_category(category: Optional[str], sub_category: Optional[str] = None) -> dict:
    try:
        canonical, sub = resolve_category(category, sub_category)
    except UnknownCategory:
        return {"isValid": False, "category": None, "subCategory": None, "validSubCategories": []}
    except UnknownSubcategory:
        canonical, _ = resolve_category(category)
        return {"isValid": False, "category": canonical, "subCategory": None, "validSubCategories": TAXONOMY[canonical]}
    return {"isValid": True, "category": canonical, "subCategory": sub, "validSubCategories": TAXONOMY[canonical]}


def list_by_category(db, category: Optional[str], sub_category: Optional[str] = None) -> List[dict]:
    canonical, sub = resolve_category(category, sub_category)
    query = {"category": canonical}
    if sub:
        query["subCategory"] = sub
    return [serialize_doc(s) for s in db["service"].find(query).sort("createdAt", -1)]


def list_services(db) -> List[dict]:
    return [serialize_doc(s) for s in db["service"].find().sort("createdAt", -1)]


def get_service(db, service_id: str) -> dict:
    doc = db["service"].find_one({"_id": parse_object_id(service_id, "product ID")})
    if not doc:
        raise NotFound("Product not found")
    return doc


def product_ratings(db, service_id: str) -> dict:
    doc = get_service(db, service_id)
    reviews = [r for r in doc.get("reviews") or [] if isinstance(r, dict) and "rating" in r]
    if not reviews:
        return {"averageRating": doc.get("rating", 0), "totalReviews": 0}
    average = sum(r["rating"] for r in reviews) / len(reviews)
    return {"averageRating": round(average, 2), "totalReviews": len(reviews)}


def search(db, term: Optional[str]) -> List[dict]:
    term = (term or "").strip()
    if not term:
        return []
    pattern = {"$regex": re.escape(term), "$options": "i"}
    cursor = db["service"].find({"$or": [{"productName": pattern}, {"subCategory": pattern}]})
    return [serialize_doc(s) for s in cursor]


def create_product(db, fields: dict, image_paths: Optional[List[str]] = None) -> dict:
    image_paths = image_paths or []
    if len(image_paths) > MAX_IMAGES:
        raise TooManyImages()
    category, sub = resolve_product_category(fields.get("category"), fields.get("subCategory"))
    service = Service(**{**fields, "category": category, "subCategory": sub, "images": image_paths})
    service_id = create_document("service", service, db)
    logger.info("Created service %s in %s / %s with %d image(s)", service_id, category, sub, len(image_paths))
    return db["service"].find_one({"_id": parse_object_id(service_id)})


def update_product(db, service_id: str, fields: dict) -> dict:
    current = get_service(db, service_id)
    if "category" in fields or "subCategory" in fields:
        category, sub = resolve_product_category(
            fields.get("category", current["category"]),
            fields.get("subCategory", current["subCategory"]),
        )
        fields["category"], fields["subCategory"] = category, sub
    if fields:
        fields["updatedAt"] = now()
        db["service"].update_one({"_id": current["_id"]}, {"$set": fields})
    return db["service"].find_one({"_id": current["_id"]})


def delete_product(db, service_id: str, upload_dir: str):
    doc = get_service(db, service_id)
    for path in doc.get("images", []):
        filename = os.path.basename(path)
        full_path = os.path.join(upload_dir, filename)
        if filename and os.path.exists(full_path):
            os.remove(full_path)
    db["service"].delete_one({"_id": doc["_id"]})
    logger.info("Deleted service %s", service_id)


# ---------------------- Images ----------------------

def _unique_filename(original: Optional[str]) -> str:
    ext = os.path.splitext(original or "")[1].lower()
    return f"{int(time.time() * 1000)}-{random.randint(0, 10 ** 9)}{ext}"


async def save_images(files: List[UploadFile], upload_dir: str) -> List[str]:
    """Store uploaded images and return their public paths."""
    files = [f for f in files or [] if f.filename]
    if len(files) > MAX_IMAGES:
        raise TooManyImages()
    for f in files:
        if not (f.content_type or "").startswith("image/"):
            raise ValidationError("Not an image! Please upload an image.")

    os.makedirs(upload_dir, exist_ok=True)
    paths = []
    for f in files:
        name = _unique_filename(f.filename)
        with open(os.path.join(upload_dir, name), "wb") as out:
            out.write(await f.read())
        paths.append(IMAGE_URL_PREFIX + name)
    return paths

"""
Database Schemas for BoldServe

Collections:
- user: customer accounts (isAdmin users are excluded from dashboard counts)
- admin: the single administrator account
- service: catalog products/services, filed under the fixed category taxonomy
- cart: one per user, line items reference services
- order: order snapshots
- payment: payment records, revenue counts only status == "completed"

Documents are stored with camelCase keys; models expose snake_case attributes.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

TAXONOMY: Dict[str, List[str]] = {
    "Office Stationaries": [
        "Notebooks & Papers",
        "Adhesive & Glue",
        "Pen & Pencil Kits",
        "Whitener & Markers",
        "Stapler & Scissors",
        "Calculator",
    ],
    "Print and Demands": [
        "Business Cards",
        "Banners & Posters",
        "Marketing Materials",
        "Printing Products",
    ],
    "IT Service and Repairs": [
        "Computer & Laptop Repair",
        "Software & OS Support",
        "Server & Networking Solutions",
        "IT Security & Cybersecurity Solutions",
        "Upgradation & Hardware Enhancement",
        "IT Consultation & AMC Services",
    ],
}

MAX_IMAGES = 6
MIN_MOBILE_LENGTH = 10


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------- Collections ----------------------

class User(CamelModel):
    full_name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, unique")
    password: str = Field(..., description="Hashed password")
    mobile: Optional[str] = None
    address: str = ""
    bio: str = ""
    profile_image: str = ""
    is_admin: bool = False


class Admin(CamelModel):
    user_id: str = Field(..., description="Fixed admin login id")
    password: str = Field(..., description="Hashed password")
    role: str = "admin"


class Service(CamelModel):
    product_name: str = Field(..., description="Display name")
    category: str
    sub_category: str
    price: float = Field(..., ge=0)
    description: str = ""
    offers: str = ""
    review: str = ""
    rating: float = Field(0, ge=0, le=5)
    images: List[str] = Field(default_factory=list, max_length=MAX_IMAGES)
    is_available: bool = True


class CartItem(CamelModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    category: str


class Order(CamelModel):
    customer_name: str
    service_name: str
    amount: float = Field(..., ge=0)
    status: str = Field("pending", description="pending, accepted, cancelled, completed")
    payment_status: str = Field("pending", description="pending, completed, failed")
    user_id: Optional[str] = None


class Payment(CamelModel):
    amount: float = Field(..., ge=0)
    status: str = Field("pending", description="pending, completed, failed")
    order_id: Optional[str] = None
    user_id: Optional[str] = None
    method: Optional[str] = None


# ---------------------- Request bodies ----------------------

class RegisterBody(CamelModel):
    full_name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    mobile: Optional[str] = None

    @field_validator("full_name", "mobile")
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginBody(CamelModel):
    email: EmailStr
    password: str


class AdminLoginBody(CamelModel):
    user_id: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProfileUpdateBody(CamelModel):
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    bio: Optional[str] = None


class ServiceUpdateBody(CamelModel):
    product_name: Optional[str] = None
    category: Optional[str] = None
    sub_category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    offers: Optional[str] = None
    review: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    is_available: Optional[bool] = None


class AddToCartBody(CamelModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class UpdateQuantityBody(CamelModel):
    quantity: int = Field(..., ge=1)


class OrderUpdateBody(CamelModel):
    customer_name: Optional[str] = None
    service_name: Optional[str] = None
    amount: Optional[float] = Field(None, ge=0)
    status: Optional[str] = None
    payment_status: Optional[str] = None


class PaymentStatusBody(CamelModel):
    status: str = Field(..., min_length=1)


# ---------------------- Tokens ----------------------

class TokenClaims(CamelModel):
    user_id: str
    is_admin: bool = False
    role: Literal["user", "admin"] = "user"
    exp: Optional[datetime] = None

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError

from config import ACCESS_TOKEN_EXPIRE_HOURS, ADMIN_PASSWORD, ADMIN_USER_ID, ALGORITHM, SECRET_KEY
from database import create_document, get_db, now, parse_object_id, serialize_doc
from errors import (
    DuplicateEmail,
    Forbidden,
    InvalidAuthFormat,
    InvalidCredentials,
    InvalidMobile,
    NotFound,
    TokenExpired,
    TokenInvalid,
    Unauthorized,
    ValidationError,
)
from schemas import MIN_MOBILE_LENGTH, Admin, TokenClaims, User

logger = logging.getLogger(__name__)

SCHEME = "Bearer"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password, hashed_password):
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # unrecognized or malformed hash
        return False


def get_password_hash(password):
    return pwd_context.hash(password)


# ---------------------- Tokens ----------------------

def create_access_token(claims: TokenClaims, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode = claims.model_dump(by_alias=True, exclude={"exp"})
    to_encode["exp"] = expire
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTError:
        raise TokenInvalid()
    if not payload.get("userId"):
        raise TokenInvalid("Invalid token payload")
    try:
        return TokenClaims.model_validate(payload)
    except ValueError:
        raise TokenInvalid("Invalid token payload")


def claims_for_user(user: dict) -> TokenClaims:
    is_admin = bool(user.get("isAdmin"))
    return TokenClaims(user_id=str(user["_id"]), is_admin=is_admin, role="admin" if is_admin else "user")


def public_user(user: dict) -> dict:
    doc = serialize_doc(user)
    doc["id"] = doc.pop("_id")
    doc.pop("password", None)
    return doc


# ---------------------- Credentials ----------------------

def get_user_by_email(db, email: str):
    return db["user"].find_one({"email": email.strip().lower()})


def register_user(db, full_name: str, email: str, password: str, mobile: Optional[str]):
    """Create a customer account and return (token, user document)."""
    email = email.strip().lower()
    if get_user_by_email(db, email):
        raise DuplicateEmail()
    if not mobile or len(mobile) < MIN_MOBILE_LENGTH:
        raise InvalidMobile()

    user = User(full_name=full_name, email=email, password=get_password_hash(password), mobile=mobile)
    user_id = create_document("user", user, db)
    doc = db["user"].find_one({"_id": parse_object_id(user_id)})
    logger.info("Registered user %s", user_id)
    return create_access_token(claims_for_user(doc)), doc


def login(db, email: str, password: str):
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.get("password", "")):
        logger.warning("Rejected login for %s", email)
        raise InvalidCredentials()
    return create_access_token(claims_for_user(user)), user


def admin_login(db, user_id: str, password: str) -> str:
    """Authenticate against the singleton admin; the token comes back prefixed with the scheme."""
    admin = db["admin"].find_one({"userId": ADMIN_USER_ID})
    if not admin or user_id != admin["userId"] or not verify_password(password, admin["password"]):
        logger.warning("Rejected admin login for %r", user_id)
        raise InvalidCredentials()
    token = create_access_token(TokenClaims(user_id=admin["userId"], is_admin=True, role="admin"))
    return f"{SCHEME} {token}"


def ensure_single_admin(db):
    """Reconcile the admin collection down to exactly one record with the configured userId."""
    admins = db["admin"]
    canonical = admins.find_one({"userId": ADMIN_USER_ID}, sort=[("_id", 1)])
    if canonical is None:
        try:
            create_document("admin", Admin(user_id=ADMIN_USER_ID, password=get_password_hash(ADMIN_PASSWORD)), db)
            logger.info("Default admin account created")
        except DuplicateKeyError:
            # index from an earlier run; another process created it first
            pass
        canonical = admins.find_one({"userId": ADMIN_USER_ID}, sort=[("_id", 1)])
    keep = canonical["_id"]
    removed = admins.delete_many({"_id": {"$ne": keep}}).deleted_count
    if removed:
        logger.warning("Removed %d extra admin account(s)", removed)
    # built only after pruning; duplicate userIds would fail the build
    admins.create_index("userId", unique=True)
    return keep


def update_profile(db, user_id: str, email=None, address=None, bio=None):
    _id = parse_object_id(user_id, "user ID")
    user = db["user"].find_one({"_id": _id})
    if not user:
        raise NotFound("User not found")
    fields = {}
    if email:
        email = email.strip().lower()
        if email != user["email"]:
            if db["user"].find_one({"email": email, "_id": {"$ne": _id}}):
                raise DuplicateEmail("Email already in use")
            fields["email"] = email
    if address is not None:
        fields["address"] = address.strip()
    if bio is not None:
        fields["bio"] = bio.strip()
    if not fields:
        return user, False
    fields["updatedAt"] = now()
    db["user"].update_one({"_id": _id}, {"$set": fields})
    return db["user"].find_one({"_id": _id}), True


# ---------------------- Authorization gate ----------------------

def parse_authorization(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthorized("No valid authorization token provided")
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != SCHEME or not parts[1]:
        raise InvalidAuthFormat()
    return parts[1]


async def get_token_claims(authorization: Optional[str] = Header(default=None)) -> TokenClaims:
    return verify_token(parse_authorization(authorization))


def get_current_user(claims: TokenClaims = Depends(get_token_claims), db=Depends(get_db)) -> TokenClaims:
    # user routes re-resolve the account so deleted users lose access immediately
    try:
        _id = parse_object_id(claims.user_id)
    except ValidationError:
        raise Unauthorized("User not found")
    if not db["user"].find_one({"_id": _id}, {"_id": 1}):
        raise Unauthorized("User not found")
    return claims


async def get_current_admin(claims: TokenClaims = Depends(get_token_claims)) -> TokenClaims:
    if not (claims.is_admin and claims.role == "admin"):
        raise Forbidden()
    return claims

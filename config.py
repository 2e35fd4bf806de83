import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

SECRET_KEY = os.getenv("JWT_SECRET") or os.getenv("SECRET_KEY", "supersecretkey-change")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))

ADMIN_USER_ID = os.getenv("ADMIN_USER_ID", "Admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "Admin123")

APP_ENV = os.getenv("APP_ENV", "production")
DEBUG = APP_ENV == "development"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "uploads"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

PORT = int(os.getenv("PORT", "8003"))

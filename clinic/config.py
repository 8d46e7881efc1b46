import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")

# Seconds a SQLite writer waits on a locked database before giving up
SQLITE_BUSY_TIMEOUT = float(os.getenv("SQLITE_BUSY_TIMEOUT", "15"))

# Listing pagination (appointments, prescriptions, audit entries)
LISTING_PAGE_SIZE = int(os.getenv("LISTING_PAGE_SIZE", "50"))
LISTING_MAX_PAGE_SIZE = int(os.getenv("LISTING_MAX_PAGE_SIZE", "200"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Comma separated list of origins allowed by CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
)

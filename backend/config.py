"""
Configuration and shared helpers
"""

import os
import hashlib
import secrets
from datetime import datetime, timezone
from zoneinfo import ZoneInfo
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Load .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'fieldforce')

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

# Business calendar: month and day boundaries are computed in this timezone
APP_TIMEZONE = os.environ.get('APP_TIMEZONE', 'Asia/Kolkata')
BUSINESS_TZ = ZoneInfo(APP_TIMEZONE)

# Visit rules (defaults, overridable at runtime via the "visit_rules" setting)
VISIT_MAX_AGE_DAYS = int(os.environ.get('VISIT_MAX_AGE_DAYS', '90'))
GEO_BOUNDS = {
    "min_lat": float(os.environ.get('GEO_MIN_LAT', '6.5')),
    "max_lat": float(os.environ.get('GEO_MAX_LAT', '37.1')),
    "min_lon": float(os.environ.get('GEO_MIN_LON', '68.7')),
    "max_lon": float(os.environ.get('GEO_MAX_LON', '97.4')),
}

SESSION_DAYS = int(os.environ.get('SESSION_DAYS', '7'))
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')


# ==================== HELPERS ====================

def hash_password(password: str) -> str:
    """SHA256 password hash"""
    return hashlib.sha256(password.encode()).hexdigest()

def generate_token() -> str:
    """Secure session token"""
    return secrets.token_urlsafe(32)

def to_iso(dt: datetime) -> str:
    """
    UTC ISO string with fixed millisecond precision.
    Every stored date goes through here so that string range queries
    ($gte/$lte) compare correctly.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=BUSINESS_TZ)
    return dt.astimezone(timezone.utc).isoformat(timespec='milliseconds')

def now_iso() -> str:
    """Current date/time as ISO"""
    return to_iso(datetime.now(timezone.utc))

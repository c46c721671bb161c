"""
Application configuration settings.
"""
import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env file if it exists (for local development)
env_file = BASE_DIR / ".env"
if env_file.exists():
    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                os.environ.setdefault(key.strip(), value.strip())

# Database - Support both SQLite (local) and PostgreSQL (production)
DATABASE_URL = os.getenv("DATABASE_URL", "")
DATABASE_PATH = BASE_DIR / "consultdesk.db"

# Determine if using PostgreSQL
USE_POSTGRES = DATABASE_URL.startswith("postgres")

# Render.com uses postgres:// but psycopg2 needs postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Security
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-consultdesk-secret")
SESSION_COOKIE_NAME = "consultdesk_session"
SESSION_MAX_AGE = 60 * 60 * 24  # 24 hours in seconds
TEMP_PASSWORD_LENGTH = 12

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Mail API (transactional email provider)
MAIL_API_URL = os.getenv("MAIL_API_URL", "")
MAIL_API_TOKEN = os.getenv("MAIL_API_TOKEN", "")
MAIL_FROM = os.getenv("MAIL_FROM", "noreply@consultdesk.local")
MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "ConsultDesk")
MAIL_TIMEOUT = float(os.getenv("MAIL_TIMEOUT", "10"))
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Identifier prefixes
PREFIX_ADMIN = "ADM"
PREFIX_EMPLOYEE = "EMP"
PREFIX_CUSTOMER = "CUS"
PREFIX_SERVICE = "SER"
PREFIX_LEAD = "LEAD"
PREFIX_PACKAGE = "PKG"
PREFIX_MESSAGE = "MSG"

# Managers share the employee sequence
ROLE_ID_PREFIXES = {
    "admin": PREFIX_ADMIN,
    "manager": PREFIX_EMPLOYEE,
    "employee": PREFIX_EMPLOYEE,
    "customer": PREFIX_CUSTOMER,
}

# Catalog defaults
DEFAULT_PROCESSING_DAYS = 7
DEFAULT_GST_RATE = 18
DEFAULT_CURRENCY = "INR"

# Lead options
LEAD_SOURCES = ["website", "flexfunneli", "referral", "other"]
DEFAULT_DECLINE_REASON = "No reason provided"
DEFAULT_SEND_BACK_NOTE = "Lead sent back by admin for review."

# Customer profile fields mirrored onto employees
CUSTOMER_PROFILE_FIELDS = [
    "mobile",
    "dob",
    "gender",
    "pan",
    "gst",
    "address",
    "city",
    "state",
    "country",
    "postalCode",
    "natureEmployment",
    "annualIncome",
    "education",
    "certifications",
    "institute",
    "completionDate",
    "activeFrom",
    "activeTill",
    "customerCreateDate",
]

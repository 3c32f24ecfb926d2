# app/core/config.py

import os
import logging
from decimal import Decimal
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

# =====================================================
# APPLICATION
# =====================================================
APP_ENV = os.getenv("APP_ENV")
if APP_ENV not in {"development", "staging", "production"}:
    raise ValueError("APP_ENV must be development | staging | production")

IS_PRODUCTION = APP_ENV == "production"

ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "false").lower() == "true"

# =====================================================
# DATABASE
# =====================================================
DB_TYPE = os.getenv("DB_TYPE")
if DB_TYPE not in {"postgres", "sqlite"}:
    raise ValueError("DB_TYPE must be postgres | sqlite")

if DB_TYPE == "postgres":
    DATABASE_URL = os.getenv("DATABASE_URL")
    if not DATABASE_URL:
        raise ValueError("DATABASE_URL is required for Postgres")

elif DB_TYPE == "sqlite":
    if IS_PRODUCTION:
        raise ValueError("SQLite is NOT allowed in production")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./quotes.db")

# ---- Pool tuning (safe defaults) ----
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 10))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", 20))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", 30))
DB_ECHO_POOL = os.getenv("DB_ECHO_POOL", "false").lower() == "true"

# ---- SSL ----
# MUST be true in production
DB_SSL_VERIFY = os.getenv("DB_SSL_VERIFY", "true").lower() == "true"
if IS_PRODUCTION and not DB_SSL_VERIFY:
    logger.warning("Running in production with relaxed SSL verification")

# =====================================================
# QUOTES
# =====================================================
QUOTES_SHOW_DISCOUNT = os.getenv("QUOTES_SHOW_DISCOUNT", "false").lower() == "true"
QUOTES_MARGIN_TARGET = Decimal(os.getenv("QUOTES_MARGIN_TARGET", "40"))
QUOTES_TERMS = os.getenv("QUOTES_TERMS", "12,24,36")

# =====================================================
# EXTERNAL COLLABORATORS
# =====================================================
FINANCE_API_URL = os.getenv("FINANCE_API_URL", "").strip()
FINANCE_API_KEY = os.getenv("FINANCE_API_KEY", "").strip()
FINANCE_TIMEOUT_SECONDS = float(os.getenv("FINANCE_TIMEOUT_SECONDS", 10))

ANALYSIS_API_URL = os.getenv("ANALYSIS_API_URL", "").strip()
ANALYSIS_TIMEOUT_SECONDS = float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", 10))

RENDER_TIMEOUT_SECONDS = float(os.getenv("RENDER_TIMEOUT_SECONDS", 30))

BRAND_NAME = os.getenv("BRAND_NAME", "Billing Back Office")

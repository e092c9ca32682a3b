"""
Runtime configuration, read from the environment (and a .env file if present).
"""

import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "")

# Local JSON store, used when no Supabase key is configured
ESTIMATE_DATA_FILE = os.getenv("ESTIMATE_DATA_FILE", "/tmp/estimator_data.json")

DEFAULT_DATABASE_TYPE = os.getenv("DEFAULT_DATABASE_TYPE", "standard_uk")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

API_VERSION = "1.0.0"

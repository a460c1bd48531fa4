# config.py
import os

# metafield holding the limits map, owned by the validation object
METAFIELD_NAMESPACE = "$app:product-limits"
METAFIELD_KEY = "product-limits-values"

# range the settings screen accepts per variant
LIMIT_MIN = 0
LIMIT_MAX = 99

class Settings:
    SHOPIFY_SHOP = os.getenv("SHOPIFY_SHOP", "")
    SHOPIFY_ADMIN_TOKEN = os.getenv("SHOPIFY_ADMIN_TOKEN", "")
    SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2024-07")
    VALIDATION_ID = os.getenv("VALIDATION_ID", "")

    LIMITS_BACKEND = os.getenv("LIMITS_BACKEND", "file")
    STORE_DIR = os.getenv("STORE_DIR", "store")
    STORE_ENC_KEY = os.getenv("STORE_ENC_KEY", "")

    ADMIN_USER = os.getenv("ADMIN_USER", "")
    ADMIN_PASS = os.getenv("ADMIN_PASS", "")
    LOGS_DIR = os.getenv("LOGS_DIR", "logs")
    PORT = int(os.getenv("PORT", "5000"))

    PROXY_URL = os.getenv("PROXY_URL", None)
    HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))

"""Application-wide constants."""

APP_NAME = "Field-Stock"
APP_VERSION = "0.3.0"
APP_ORGANIZATION = "Field-Stock"

# ── Locations ────────────────────────────────────────────────────
SHOP = "shop"

# Labels written into the history sheet for non-truck endpoints
SHOP_LABEL = "Shop"
SUPPLIER_LABEL = "Supplier"
CUSTOMER_LABEL = "Customer"
DEFAULT_JOB_NAME = "Job"

# ── Seasons ──────────────────────────────────────────────────────
SEASONS = ["heating", "cooling", "year-round"]
DEFAULT_SEASON = "year-round"

ACTIVE_SEASONS_KEY = "ActiveSeasons"
DEFAULT_ACTIVE_SEASONS = "heating,cooling,year-round"

# ── Inventory sheet layout ───────────────────────────────────────
MIN_STOCK_HEADER = "MinStock"
OTHER_CATEGORY = "other"

# ── History action labels ────────────────────────────────────────
ACTION_LOAD = "Loaded Truck"
ACTION_RETURN = "Returned to Shop"
ACTION_TRANSFER = "Transferred"
ACTION_RECEIVE = "Received Stock"
ACTION_USE = "Used on Job"
ACTION_QUICK_LOAD = "Quick Load"
ACTION_RESTOCK = "Restocked Shop"
ACTION_ADD_PART = "Added Part"

# ── Cache keys ───────────────────────────────────────────────────
CACHE_SETTINGS = "settings"
CACHE_CATEGORIES = "categories"
CACHE_TRUCKS = "trucks"
CACHE_PARTS_STATIC = "parts_static"

# ── Login lockout ────────────────────────────────────────────────
# Lockout duration (ms) indexed by consecutive failures - 1.
LOCKOUT_LADDER_MS = [
    0, 0, 0, 0, 0,
    60_000,       # 1 minute
    300_000,      # 5 minutes
    900_000,      # 15 minutes
    1_800_000,    # 30 minutes
    3_600_000,    # 1 hour
]
LOGIN_ATTEMPTS_KEY = "loginAttempts"
LOCKOUT_UNTIL_KEY = "lockoutUntil"
PIN_LENGTH = 4

# ── Uploads ──────────────────────────────────────────────────────
MAX_IMAGE_BYTES = 5 * 1024 * 1024

"""Cart engine constants.

Centralizes fallback values and storage keys so the pricing code and the
collaborators agree on them.
"""

# ============== DELIVERY ==============
FALLBACK_DELIVERY_FEE = 2.99
DEFAULT_DELIVERY_MINUTES = 30
MIN_DELIVERY_MINUTES = 15
MAX_DELIVERY_MINUTES = 120
BASE_DELIVERY_MINUTES = 20
MINUTES_PER_KM = 2
DEFAULT_MAX_DELIVERY_RADIUS_KM = 50
DEFAULT_DELIVERY_FEE_TIMEOUT = 10.0  # seconds
DELIVERY_FEE_CACHE_TTL = 300  # 5 minutes

# (max distance km, fee)
DEFAULT_DELIVERY_FEE_RANGES: tuple[tuple[float, float], ...] = (
    (2.0, 30.0),
    (5.0, 50.0),
    (10.0, 80.0),
)
DEFAULT_EXTRA_RANGE_FEE = 5.0  # per extra 100 m beyond the last range

# ============== FEES ==============
DEFAULT_SERVICE_FEE = 0.50

# ============== STORAGE ==============
GUEST_USER_ID = "guest"
CART_KEY_PREFIX = "cart_items_"
MENU_ITEM_PREFS_PREFIX = "menu_item_prefs_"
CART_EXPIRY_SECONDS = 30 * 24 * 60 * 60

# ============== OFFERS ==============
LTO_CACHE_TTL = 10  # seconds

# ============== CUSTOMIZATION KEYS ==============
KEY_PAID_DRINK_QUANTITIES = "paid_drink_quantities"
KEY_FREE_DRINK_QUANTITIES = "free_drink_quantities"
KEY_DRINKS = "drinks"
KEY_MENU_ITEM_ID = "menu_item_id"
KEY_RESTAURANT_ID = "restaurant_id"
KEY_IS_LIMITED_OFFER = "is_limited_offer"
KEY_LTO_OFFER_TYPES = "lto_offer_types"
KEY_LTO_OFFER_DETAILS = "lto_offer_details"

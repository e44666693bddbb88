from pathlib import Path


APP_DIR = Path(__file__).resolve().parents[1]

TEMPLATES_DIR = APP_DIR / "templates"
STATIC_DIR = APP_DIR / "static"

DEFAULT_DASHBOARD_PATH = "/dashboard"
LOGIN_PATH = "/login"

STOCK_LOCATIONS = ("godown", "store")
MOVEMENT_TYPES = ("IN", "OUT", "SALE", "ADJUST", "TRANSFER", "RETURN", "DAMAGE", "EXPIRED")
SORT_ORDERS = ("asc", "desc")
PRODUCT_SORT_FIELDS = ("createdAt", "name", "price", "quantity", "expirationDate")

SCANNER_RESTOCK_REASON = "Scanner restock"
SCANNER_SALE_REASON = "Scanner sale"

SENSITIVE_FIELDS = (
    "password",
    "newpassword",
    "currentpassword",
    "token",
    "authorization",
    "secret",
    "apikey",
    "api_key",
    "creditcard",
    "cvv",
    "ssn",
)

ADMIN_ROLES = ("admin", "owner", "superadmin")

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "refunded")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
PAYMENT_METHODS = ("cash", "card", "online", "bank_transfer")
PURCHASE_ORDER_STATUSES = ("draft", "sent", "confirmed", "partially_received", "received", "cancelled")
PAYMENT_TERMS = ("net_15", "net_30", "net_60", "cash_on_delivery", "advance_payment")

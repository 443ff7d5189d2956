REQUEST_TIMEOUT = 10.0  # seconds, fixed per request

# persisted client state
TOKEN_KEY = "token"
USER_KEY = "user"

ROLE_ADMIN = "Admin"

# chat clients kept in memory; idle ones beyond this are dropped
MAX_CHAT_CLIENTS = 1000

MIN_PASSWORD_LENGTH = 6
STRONG_PASSWORD_LENGTH = 8

FEATURED_PRODUCTS = 4
PRODUCTS_PAGE_SIZE = 10

# inline keyboard callback data
CB_CART_INC = "cart:inc"
CB_CART_DEC = "cart:dec"
CB_CART_DEL = "cart:del"
CB_CART_CHECKOUT = "cart:checkout"
CB_CART_REFRESH = "cart:refresh"
CB_CONFIRM = "confirm"

ORDER_STATUS_ICONS = {
    "pending": "⏰",
    "processing": "📦",
    "shipped": "🚚",
    "delivered": "✅",
    "cancelled": "❌",
}

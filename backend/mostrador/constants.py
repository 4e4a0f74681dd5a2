# Overview: Shared vocabulary for payment methods, record kinds and shift states.

PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_TRANSFER = "transfer"
PAYMENT_FIADO = "fiado"
PAYMENT_STAFF = "staff"

# Display/report order
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CARD, PAYMENT_TRANSFER, PAYMENT_FIADO, PAYMENT_STAFF)

PAYMENT_LABELS = {
    PAYMENT_CASH: "Cash",
    PAYMENT_CARD: "Card",
    PAYMENT_TRANSFER: "Transfer",
    PAYMENT_FIADO: "Store credit",
    PAYMENT_STAFF: "Staff consumption",
}

REFUND_CASH = "cash"
REFUND_CARD = "card"
REFUND_PRODUCT = "product"  # exchange, no money leaves the drawer
REFUND_METHODS = (REFUND_CASH, REFUND_CARD, REFUND_PRODUCT)

KIND_SALE = "sale"
KIND_RETURN = "return"

SHIFT_OPEN = "open"
SHIFT_CLOSED = "closed"
SHIFT_TYPES = ("day", "night")

MOVEMENT_FIADO = "fiado"
MOVEMENT_ABONO = "abono"
MOVEMENT_PAGO_TOTAL = "pago-total"

PAYMENT_MODE_PARTIAL = "abono"
PAYMENT_MODE_TOTAL = "total"

TICKET_WIDTH = 6
RETURN_TICKET_PREFIX = "R-"

DEFAULT_MIN_STOCK = 5

STOCK_FILTERS = ("all", "low", "out")
REPORT_RANGES = ("today", "week", "month", "custom")

COLLECTION_PRODUCTS = "products"
COLLECTION_CLIENTS = "clients"
COLLECTION_SALES = "sales"
COLLECTION_SHIFTS = "shifts"
COLLECTION_MOVEMENTS = "client_movements"

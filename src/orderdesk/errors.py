"""Custom exceptions for orderdesk."""


class OrderdeskError(Exception):
    """Base exception for all orderdesk errors."""

    pass


class ValidationError(OrderdeskError):
    """Raised when input is missing or malformed."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)


class MinimumOrderError(ValidationError):
    """Raised when a checkout total is below the store's minimum order."""

    def __init__(self, total: int, minimum: int, currency: str = "IDR"):
        from .money import format_price

        self.total = total
        self.minimum = minimum
        self.shortfall = minimum - total
        super().__init__(
            f"Minimum order is {format_price(minimum, currency)}. "
            f"Add {format_price(self.shortfall, currency)} more to check out."
        )


class InvalidTransitionError(OrderdeskError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, from_status: str, to_status: str, kind: str = "order"):
        self.from_status = from_status
        self.to_status = to_status
        self.kind = kind
        super().__init__(
            f"Cannot change {kind} status from {from_status} to {to_status}"
        )


class ConflictError(OrderdeskError):
    """Raised when a write is based on a stale version of an order."""

    def __init__(self, order_id: str, expected: int, actual: int):
        self.order_id = order_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Order {order_id} was modified concurrently "
            f"(expected version {expected}, found {actual}). Reload and retry."
        )


class CouponInvalidError(OrderdeskError):
    """Raised when a coupon code is unknown or expired."""

    def __init__(self, code: str, reason: str | None = None):
        self.code = code
        self.reason = reason
        msg = f"Invalid coupon: {code}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class OrderNotFoundError(OrderdeskError):
    """Raised when an order ID or number doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class LineItemNotFoundError(OrderdeskError):
    """Raised when a cart line item ID doesn't exist."""

    def __init__(self, line_item_id: str):
        self.line_item_id = line_item_id
        super().__init__(f"Line item not found: {line_item_id}")


class SettingsNotFoundError(OrderdeskError):
    """Raised when settings.json doesn't exist."""

    def __init__(self, path: str | None = None):
        self.path = path
        msg = "Store settings not initialized. Run 'orderdesk init' first."
        if path:
            msg = f"Settings not found at {path}. Run 'orderdesk init' first."
        super().__init__(msg)


class SettingsExistsError(OrderdeskError):
    """Raised when trying to init but settings already exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Settings already exist at {path}. Use --force to overwrite.")


class InvalidSchemaVersionError(OrderdeskError):
    """Raised when a data file has an unsupported schema version."""

    def __init__(self, found: int, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported schema version {found}. This tool supports version {supported}."
        )

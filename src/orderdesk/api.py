"""FastAPI REST API for orderdesk."""

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
from typing import Literal, Optional

from . import __version__
from .aggregator import build_order_detail, customer_stats, export_orders_csv, export_orders_json
from .checkout import CheckoutSession
from .errors import (
    ConflictError,
    CouponInvalidError,
    InvalidSchemaVersionError,
    InvalidTransitionError,
    LineItemNotFoundError,
    MinimumOrderError,
    OrderdeskError,
    OrderNotFoundError,
    SettingsExistsError,
    SettingsNotFoundError,
    ValidationError,
)
from .message import (
    WhatsAppLinkHook,
    build_whatsapp_url,
    compose_order_confirmation,
    compose_product_inquiry,
    compose_store_inquiry,
    to_international,
)
from .models import (
    CustomerInfo,
    LineItem,
    Order,
    OrderSource,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingOption,
    StoreSettings,
)
from .order_store import OrderStore
from .pricing import compute_order_totals
from .settings_store import SettingsStore
from .status import allowed_transitions


# --- Pydantic Schemas ---


class CustomerSchema(BaseModel):
    name: str
    phone: str
    address: str = ""
    email: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    notes: Optional[str] = None


class LineItemSchema(BaseModel):
    id: str
    product_id: str
    name: str
    unit_price: int
    quantity: int
    unit_cost: int = 0
    variant: Optional[str] = None
    notes: Optional[str] = None
    line_total: Optional[int] = None


class LineItemInput(BaseModel):
    """A cart or order line sent by a client."""

    product_id: str
    name: str
    unit_price: int = Field(..., ge=0)
    quantity: int = Field(default=1, ge=1)
    unit_cost: int = Field(default=0, ge=0)
    variant: Optional[str] = None
    notes: Optional[str] = None


class StatusChangeSchema(BaseModel):
    status: OrderStatus
    at: str
    note: Optional[str] = None


class BreakdownSchema(BaseModel):
    subtotal: int
    discount: int
    shipping_cost: int
    tax: int
    total: int


class OrderSchema(BaseModel):
    id: str
    order_number: str
    customer: CustomerSchema
    items: list[LineItemSchema]
    subtotal: int
    shipping: int
    tax: int
    discount: int
    total: int
    total_cost: int
    total_profit: int
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    source: OrderSource
    customer_id: Optional[str] = None
    shipping_method: Optional[str] = None
    coupon_code: Optional[str] = None
    tracking_number: Optional[str] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    paid_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    status_history: list[StatusChangeSchema] = []
    version: int
    created_at: str
    updated_at: str


class OrderDetailSchema(OrderSchema):
    breakdown: BreakdownSchema
    item_count: int
    stored_subtotal: int
    subtotal_mismatch: bool
    allowed_transitions: list[OrderStatus]


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    page: int
    limit: int
    total: int
    total_pages: int


class OrderCreateRequest(BaseModel):
    """Manual order entry by the store owner."""

    customer: CustomerSchema
    customer_id: Optional[str] = None
    items: list[LineItemInput] = Field(..., min_length=1)
    shipping: int = Field(default=0, ge=0)
    tax: int = Field(default=0, ge=0)
    discount: int = Field(default=0, ge=0)
    payment_method: PaymentMethod = PaymentMethod.WHATSAPP
    source: OrderSource = OrderSource.MANUAL
    notes: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    expected_version: Optional[int] = Field(
        None, description="Version the client last saw; stale versions are rejected with 409"
    )
    tracking_number: Optional[str] = None
    note: Optional[str] = None


class StatusUpdateResponse(BaseModel):
    order: OrderSchema
    notifications: list[str] = Field(
        default_factory=list, description="WhatsApp links prepared for the customer"
    )


class PaymentUpdateRequest(BaseModel):
    payment_status: PaymentStatus
    expected_version: Optional[int] = None
    transaction_id: Optional[str] = None


class ConfirmationRequest(BaseModel):
    custom_message: Optional[str] = None


class MessageResponse(BaseModel):
    message: str
    whatsapp_url: str
    phone: str


class CheckoutRequest(BaseModel):
    items: list[LineItemInput] = Field(..., min_length=1)
    customer: Optional[CustomerSchema] = None
    shipping: Optional[str] = Field(None, description="Shipping option name (default: first)")
    payment_method: Optional[str] = None
    coupon: Optional[str] = None


class QuoteResponse(BaseModel):
    breakdown: BreakdownSchema
    free_shipping: bool
    coupon_code: Optional[str] = None
    minimum_order: int
    meets_minimum: bool
    notices: list[str] = []


class CheckoutResponse(BaseModel):
    order: OrderSchema
    message: str
    whatsapp_url: str
    notices: list[str] = []


class ProductSchema(BaseModel):
    product_id: str
    name: str
    price: int = Field(..., ge=0)
    description: Optional[str] = None


class WhatsAppUrlRequest(BaseModel):
    """Prefilled chat link request from a storefront page."""

    type: Literal["checkout", "inquiry", "store", "bulk"]
    product: Optional[ProductSchema] = Field(
        None, description="Product for checkout and inquiry links"
    )
    quantity: int = Field(default=1, ge=1)
    items: Optional[list[LineItemInput]] = Field(None, description="Cart lines for bulk links")
    customer: Optional[CustomerSchema] = None
    custom_message: Optional[str] = None
    shipping: Optional[str] = None


class ShippingOptionSchema(BaseModel):
    name: str
    price: int = Field(..., ge=0)
    duration_label: str = ""


class SettingsSchema(BaseModel):
    store_name: str
    whatsapp_number: str
    shipping_options: list[ShippingOptionSchema]
    payment_methods: list[str]
    minimum_order: int
    free_shipping_threshold: int
    currency: str
    tax_rate: float
    confirmation_template: Optional[str] = None


class SettingsUpdateRequest(BaseModel):
    store_name: Optional[str] = None
    whatsapp_number: Optional[str] = None
    shipping_options: Optional[list[ShippingOptionSchema]] = None
    payment_methods: Optional[list[str]] = None
    minimum_order: Optional[int] = Field(None, ge=0)
    free_shipping_threshold: Optional[int] = Field(None, ge=0)
    currency: Optional[str] = None
    tax_rate: Optional[float] = Field(None, ge=0, le=1)
    confirmation_template: Optional[str] = None


class CustomerStatsSchema(BaseModel):
    customer_key: str
    name: str
    total_orders: int
    total_spent: int
    average_order_value: int
    first_order_date: Optional[str]
    last_order_date: Optional[str]


class CustomerStatsResponse(BaseModel):
    customers: list[CustomerStatsSchema]
    count: int


class ErrorResponse(BaseModel):
    detail: str
    error_type: str


# --- Helper Functions ---


def get_order_store() -> OrderStore:
    """Get the global OrderStore."""
    return OrderStore()


def get_settings_store() -> SettingsStore:
    """Get the global SettingsStore."""
    return SettingsStore()


def order_to_schema(order: Order) -> OrderSchema:
    return OrderSchema(**order.to_dict())


def _customer_from_schema(schema: CustomerSchema) -> CustomerInfo:
    return CustomerInfo(**schema.model_dump())


def _line_from_input(item: LineItemInput) -> LineItem:
    return LineItem.create(**item.model_dump())


def _session_from_request(request: CheckoutRequest) -> CheckoutSession:
    settings = get_settings_store().load_or_default()
    session = CheckoutSession(settings)
    for item in request.items:
        session.cart.add_item(**item.model_dump())
    if request.shipping:
        session.select_shipping(request.shipping)
    if request.payment_method:
        session.select_payment(request.payment_method)
    if request.coupon:
        session.apply_coupon(request.coupon)
    if request.customer:
        session.customer = _customer_from_schema(request.customer)
    return session


# --- FastAPI App ---


app = FastAPI(
    title="orderdesk API",
    description="REST API for store orders, checkout pricing and WhatsApp messages",
    version=__version__,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    MinimumOrderError: 400,
    CouponInvalidError: 400,
    InvalidTransitionError: 409,
    ConflictError: 409,
    OrderNotFoundError: 404,
    LineItemNotFoundError: 404,
    SettingsNotFoundError: 409,
    SettingsExistsError: 409,
    InvalidSchemaVersionError: 500,
}


@app.exception_handler(OrderdeskError)
async def orderdesk_error_handler(request: Request, exc: OrderdeskError) -> JSONResponse:
    """Map OrderdeskError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """
    Health check endpoint.

    Returns basic service status and the number of stored orders.
    """
    try:
        return {
            "status": "ok",
            "order_count": get_order_store().count(),
            "settings_initialized": get_settings_store().exists(),
        }
    except Exception as e:
        return {
            "status": "error",
            "detail": str(e),
        }


# --- Order Endpoints ---


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(
    status: Optional[OrderStatus] = Query(default=None),
    payment_status: Optional[PaymentStatus] = Query(default=None),
    search: Optional[str] = Query(default=None),
    sort_by: str = Query(default="created_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
):
    """List orders with filters and pagination."""
    result = get_order_store().search(
        status=status,
        payment_status=payment_status,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return OrderListResponse(
        orders=[order_to_schema(o) for o in result.orders],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )


@app.post("/api/orders", response_model=OrderSchema, status_code=201)
def create_order(request: OrderCreateRequest):
    """Create an order entered manually by the store owner."""
    customer = _customer_from_schema(request.customer)
    if not customer.name.strip() or not customer.phone.strip():
        raise ValidationError("customer name and phone are required", field="customer")

    items = [_line_from_input(i) for i in request.items]
    totals = compute_order_totals(
        items, shipping=request.shipping, tax=request.tax, discount=request.discount
    )
    order = Order.create(
        customer=customer,
        items=items,
        subtotal=totals.subtotal,
        shipping=totals.shipping,
        tax=totals.tax,
        discount=totals.discount,
        total=totals.total,
        total_cost=totals.total_cost,
        total_profit=totals.total_profit,
        payment_method=request.payment_method,
        source=request.source,
        customer_id=request.customer_id,
        notes=request.notes,
    )
    get_order_store().add_order(order)
    return order_to_schema(order)


@app.get("/api/orders/export")
def export_orders(
    format: Literal["csv", "json"] = Query(default="csv"),
    status: Optional[OrderStatus] = Query(default=None),
):
    """Export orders as CSV or JSON."""
    orders = get_order_store().list_orders()
    if status is not None:
        orders = [o for o in orders if o.status == status]

    if format == "json":
        return PlainTextResponse(export_orders_json(orders), media_type="application/json")
    return PlainTextResponse(
        export_orders_csv(orders),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="orders.csv"'},
    )


@app.get("/api/orders/{order_id}", response_model=OrderDetailSchema)
def get_order(order_id: str):
    """Get an order with recomputed line totals and allowed next statuses."""
    order = get_order_store().get_order(order_id)
    data = build_order_detail(order).to_dict()
    data["allowed_transitions"] = allowed_transitions(order.status)
    return OrderDetailSchema(**data)


@app.post("/api/orders/{order_id}/status", response_model=StatusUpdateResponse)
def update_order_status(order_id: str, request: StatusUpdateRequest):
    """Transition an order's status."""
    settings = get_settings_store().load_or_default()
    hook = WhatsAppLinkHook(settings.store_name, settings.currency)
    order = get_order_store().update_status(
        order_id,
        request.status,
        expected_version=request.expected_version,
        tracking_number=request.tracking_number,
        note=request.note,
        hooks=[hook],
    )
    return StatusUpdateResponse(
        order=order_to_schema(order),
        notifications=[url for _, url in hook.outbox],
    )


@app.post("/api/orders/{order_id}/payment", response_model=OrderSchema)
def update_order_payment(order_id: str, request: PaymentUpdateRequest):
    """Change an order's payment status."""
    order = get_order_store().update_payment(
        order_id,
        request.payment_status,
        expected_version=request.expected_version,
        transaction_id=request.transaction_id,
    )
    return order_to_schema(order)


@app.post("/api/orders/{order_id}/confirmation", response_model=MessageResponse)
def prepare_order_confirmation(order_id: str, request: ConfirmationRequest):
    """Prepare the order confirmation message and WhatsApp link for the customer."""
    order = get_order_store().get_order(order_id)
    settings = get_settings_store().load_or_default()

    phone = to_international(order.customer.phone)
    if not phone:
        raise ValidationError("customer phone number not available", field="phone")

    message = compose_order_confirmation(
        order,
        settings.store_name,
        template=settings.confirmation_template,
        custom_message=request.custom_message,
        currency=settings.currency,
    )
    return MessageResponse(
        message=message,
        whatsapp_url=build_whatsapp_url(phone, message),
        phone=phone,
    )


# --- Customer Endpoints ---


@app.get("/api/customers/stats", response_model=CustomerStatsResponse)
def list_customer_stats():
    """Per-customer order aggregates derived from stored orders."""
    stats = customer_stats(get_order_store().list_orders())
    return CustomerStatsResponse(
        customers=[CustomerStatsSchema(**s.to_dict()) for s in stats],
        count=len(stats),
    )


# --- Checkout Endpoints ---


@app.post("/api/checkout/quote", response_model=QuoteResponse)
def quote_checkout(request: CheckoutRequest):
    """Price a cart without submitting it."""
    session = _session_from_request(request)
    pricing = session.pricing()
    return QuoteResponse(
        breakdown=BreakdownSchema(**pricing.to_dict()),
        free_shipping=pricing.free_shipping,
        coupon_code=session.coupon.code if session.coupon else None,
        minimum_order=session.settings.minimum_order,
        meets_minimum=pricing.total >= session.settings.minimum_order,
        notices=session.notices,
    )


@app.post("/api/checkout", response_model=CheckoutResponse, status_code=201)
def submit_checkout(request: CheckoutRequest):
    """
    Submit a checkout.

    Stores the order as PENDING and returns the message and link that open
    a chat with the store. The link is not opened here.
    """
    if request.customer is None:
        raise ValidationError("customer details are missing", field="customer")
    session = _session_from_request(request)
    result = session.submit()
    get_order_store().add_order(result.order)
    return CheckoutResponse(
        order=order_to_schema(result.order),
        message=result.message,
        whatsapp_url=result.whatsapp_url,
        notices=session.notices,
    )


# --- WhatsApp Link Endpoints ---


# Shown in draft order messages until the shopper fills in their details
DRAFT_CUSTOMER = CustomerInfo(name="[Your Name]", phone="[Your Phone]", address="[Your Address]")


@app.post("/api/whatsapp/url", response_model=MessageResponse)
def generate_whatsapp_url(request: WhatsAppUrlRequest):
    """
    Prepare a chat link to the store.

    checkout: draft order for one product (quantity applies).
    bulk: draft order for several cart lines.
    inquiry: question about one product.
    store: general question to the store.
    """
    settings = get_settings_store().load_or_default()

    if request.type == "store":
        message = compose_store_inquiry(settings.store_name, request.custom_message)
    elif request.type == "inquiry":
        if request.product is None:
            raise ValidationError("is required for inquiry links", field="product")
        message = compose_product_inquiry(
            request.product.name,
            request.product.price,
            description=request.product.description,
            custom_message=request.custom_message,
            currency=settings.currency,
        )
    else:
        session = CheckoutSession(settings)
        if request.type == "checkout":
            if request.product is None:
                raise ValidationError("is required for checkout links", field="product")
            session.cart.add_item(
                request.product.product_id,
                request.product.name,
                request.product.price,
                quantity=request.quantity,
            )
        else:
            if not request.items:
                raise ValidationError("are required for bulk links", field="items")
            for item in request.items:
                session.cart.add_item(**item.model_dump())
        if request.shipping:
            session.select_shipping(request.shipping)
        session.customer = (
            _customer_from_schema(request.customer) if request.customer else DRAFT_CUSTOMER
        )
        message = session.compose_message()

    phone = to_international(settings.whatsapp_number)
    return MessageResponse(
        message=message,
        whatsapp_url=build_whatsapp_url(phone, message),
        phone=phone,
    )


# --- Settings Endpoints ---


def _settings_to_schema(settings: StoreSettings) -> SettingsSchema:
    data = settings.to_dict()
    data.pop("created_at", None)
    data.pop("updated_at", None)
    return SettingsSchema(**data)


@app.get("/api/settings", response_model=SettingsSchema)
def get_settings():
    """Current store settings (defaults if not initialized)."""
    return _settings_to_schema(get_settings_store().load_or_default())


@app.put("/api/settings", response_model=SettingsSchema)
def update_settings(request: SettingsUpdateRequest):
    """Update store settings, initializing them with defaults first if needed."""
    store = get_settings_store()
    if not store.exists():
        store.init()

    changes = request.model_dump(exclude_unset=True)
    if "shipping_options" in changes:
        if not changes["shipping_options"]:
            raise ValidationError("at least one option is required", field="shipping_options")
        changes["shipping_options"] = [ShippingOption(**o) for o in changes["shipping_options"]]
    settings = store.update(**changes)
    return _settings_to_schema(settings)

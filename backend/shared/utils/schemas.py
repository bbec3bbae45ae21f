"""
Shared Pydantic schemas used by the REST API and the session client.
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator

from shared.config.constants import MAX_CART_LINE_QTY, MAX_GUEST_NAME_LENGTH, MAX_OBSERVATION_LENGTH


# =============================================================================
# Common Types
# =============================================================================

TableStatus = Literal["FREE", "OCCUPIED"]
TableType = Literal["DINING", "COUNTER", "VIRTUAL"]
SessionStatus = Literal["OPEN", "LOCKED", "EXPIRED"]
OrderStatus = Literal["PENDING", "PREPARING", "READY", "FINISHED", "CANCELLED"]
ApprovalStatus = Literal["PENDING_APPROVAL", "APPROVED", "REJECTED"]
OrderOrigin = Literal["CUSTOMER", "WAITER", "BALCAO"]
StaffOrigin = Literal["WAITER", "BALCAO"]
ServiceType = Literal["ON_TABLE", "RETIRADA", "ENTREGA"]
DiscountMode = Literal["NONE", "AMOUNT", "PERCENT"]
PromotionScope = Literal["GLOBAL", "PRODUCT"]
PromotionDiscountType = Literal["AMOUNT", "PERCENT"]
TicketScope = Literal["ALL", "UNPRINTED", "ORDER"]
CloseOutcome = Literal["FINISH", "CANCEL"]
Weekday = Annotated[int, Field(ge=0, le=6)]


# =============================================================================
# Session Schemas
# =============================================================================


class GuestOutput(BaseModel):
    """A guest of a session."""

    id: int
    session_id: int
    name: str
    is_host: bool

    model_config = {"from_attributes": True}


class SessionOutput(BaseModel):
    """A table session with its guests."""

    id: int
    table_id: int
    table_name: str
    status: SessionStatus
    host_guest_id: int | None = None
    created_at: datetime
    closed_at: datetime | None = None
    guests: list[GuestOutput] = []


class StaffSessionOutput(SessionOutput):
    """Session as seen by staff: includes the table QR token."""

    table_type: TableType
    table_token: str


class JoinTableRequest(BaseModel):
    """Guest joins the table reached through its QR token."""

    name: str = Field(min_length=1, max_length=MAX_GUEST_NAME_LENGTH)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class JoinTableResponse(BaseModel):
    """The session joined and the guest identity to persist on the device."""

    session: SessionOutput
    guest: GuestOutput


class VirtualSessionRequest(BaseModel):
    """Waiter opens an ad-hoc tab."""

    name: str | None = Field(default=None, max_length=60)


class CloseSessionRequest(BaseModel):
    outcome: CloseOutcome = "FINISH"


# =============================================================================
# Cart Schemas
# =============================================================================


class CartNoteOutput(BaseModel):
    addon_ids: list[int] = []
    addon_names: list[str] = []
    addon_total_cents: int = 0
    observation: str = ""


class CartLineOutput(BaseModel):
    """One guest-owned cart line."""

    id: int
    session_id: int
    guest_id: int
    product_id: int
    product_name: str
    base_price_cents: int
    qty: int
    note: CartNoteOutput | None = None


class CartOutput(BaseModel):
    """All cart lines of a session (every guest)."""

    session_id: int
    lines: list[CartLineOutput]


class CartIncrementRequest(BaseModel):
    """
    Change the qty of the line identified by (product, add-ons, observation).
    A positive delta creates the line when missing.
    """

    product_id: int
    delta: int = Field(ge=-MAX_CART_LINE_QTY, le=MAX_CART_LINE_QTY)
    addon_ids: list[int] = Field(default_factory=list, max_length=20)
    observation: str | None = Field(default=None, max_length=MAX_OBSERVATION_LENGTH)

    @field_validator("delta")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("delta must not be zero")
        return value


class CartLineDeltaRequest(BaseModel):
    delta: int = Field(ge=-MAX_CART_LINE_QTY, le=MAX_CART_LINE_QTY)


class CartMutationResponse(BaseModel):
    """The line after the change; None when it was deleted."""

    line: CartLineOutput | None = None


# =============================================================================
# Order Schemas
# =============================================================================


class OrderItemOutput(BaseModel):
    id: int
    product_id: int | None = None
    name_snapshot: str
    unit_price_cents: int
    qty: int
    note: str | None = None
    added_by_name: str | None = None

    model_config = {"from_attributes": True}


class OrderOutput(BaseModel):
    """An order with its item snapshots."""

    id: int
    session_id: int
    table_id: int
    origin: OrderOrigin
    parent_order_id: int | None = None
    status: OrderStatus
    approval_status: ApprovalStatus
    created_by_guest_id: int | None = None
    created_by_profile_id: int | None = None
    approved_by_guest_id: int | None = None
    approved_by_profile_id: int | None = None
    approved_at: datetime | None = None
    subtotal_cents: int
    promo_discount_cents: int
    discount_mode: DiscountMode
    discount_value: float
    discount_cents: int
    delivery_fee_cents: int
    total_cents: int
    service_type: ServiceType
    customer_name: str | None = None
    customer_phone: str | None = None
    general_note: str | None = None
    printed_at: datetime | None = None
    printed_count: int = 0
    created_at: datetime
    items: list[OrderItemOutput] = []

    model_config = {"from_attributes": True}


class SubmitCartRequest(BaseModel):
    """Guest sends their own cart."""

    general_note: str | None = Field(default=None, max_length=MAX_OBSERVATION_LENGTH)


class StaffOrderLineInput(BaseModel):
    product_id: int
    qty: int = Field(ge=1, le=MAX_CART_LINE_QTY)
    addon_ids: list[int] = Field(default_factory=list, max_length=20)
    observation: str | None = Field(default=None, max_length=MAX_OBSERVATION_LENGTH)


class StaffOrderRequest(BaseModel):
    """Waiter or counter injects an order into a session."""

    session_id: int
    origin: StaffOrigin = "WAITER"
    items: list[StaffOrderLineInput] = Field(min_length=1)
    parent_order_id: int | None = None
    discount_mode: DiscountMode = "NONE"
    discount_value: float = Field(default=0, ge=0)
    delivery_fee_cents: int = Field(default=0, ge=0)
    service_type: ServiceType = "ON_TABLE"
    customer_name: str | None = Field(default=None, max_length=120)
    customer_phone: str | None = Field(default=None, max_length=30)
    general_note: str | None = Field(default=None, max_length=MAX_OBSERVATION_LENGTH)


class UpdateOrderStatusRequest(BaseModel):
    """Fulfillment transition by staff."""

    status: Literal["PREPARING", "READY", "FINISHED", "CANCELLED"]
    close_session: bool = False


class MarkPrintedRequest(BaseModel):
    order_ids: list[int] = Field(min_length=1)


# =============================================================================
# Kitchen Ticket / Receipt Schemas
# =============================================================================


class TicketLineOutput(BaseModel):
    name_snapshot: str
    unit_price_cents: int
    qty: int
    note: str | None = None
    total_cents: int


class KitchenTicketOutput(BaseModel):
    session_id: int
    table_name: str
    scope: TicketScope
    order_ids: list[int]
    items: list[TicketLineOutput]
    subtotal_cents: int
    generated_at: datetime


class ReceiptTokenOutput(BaseModel):
    order_id: int
    receipt_token: str


class PublicReceiptOutput(BaseModel):
    """Customer-facing, read-only receipt."""

    order_id: int
    store_name: str
    table_name: str
    created_at: datetime
    status: OrderStatus
    service_type: ServiceType
    customer_name: str | None = None
    items: list[TicketLineOutput]
    subtotal_cents: int
    promo_discount_cents: int
    discount_cents: int
    delivery_fee_cents: int
    total_cents: int


# =============================================================================
# Promotion / Menu Schemas
# =============================================================================


class PromotionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    scope: PromotionScope = "GLOBAL"
    discount_type: PromotionDiscountType = "PERCENT"
    discount_value: float = Field(ge=0)
    weekdays: list[Weekday] = Field(min_length=1)
    active: bool = True
    product_ids: list[int] = []


class PromotionUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    scope: PromotionScope | None = None
    discount_type: PromotionDiscountType | None = None
    discount_value: float | None = Field(default=None, ge=0)
    weekdays: list[Weekday] | None = Field(default=None, min_length=1)
    active: bool | None = None
    product_ids: list[int] | None = None


class PromotionOutput(BaseModel):
    id: int
    name: str
    scope: PromotionScope
    discount_type: PromotionDiscountType
    discount_value: float
    weekdays: list[int]
    active: bool
    product_ids: list[int]


class AddonOutput(BaseModel):
    id: int
    name: str
    price_cents: int

    model_config = {"from_attributes": True}


class MenuProductOutput(BaseModel):
    """Product with its price after today's promotion."""

    id: int
    name: str
    description: str | None = None
    category: str | None = None
    price_cents: int
    effective_price_cents: int
    discount_cents: int = 0
    promo_name: str | None = None
    addons: list[AddonOutput] = []


class MenuOutput(BaseModel):
    weekday: int
    products: list[MenuProductOutput]
    promotions: list[PromotionOutput]


# =============================================================================
# Error Schema
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str | None = None

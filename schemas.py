"""
Database Schemas for the storefront

Each Pydantic model represents a collection in MongoDB.
Collection name is the lowercase of the class name (StockAdjustment,
TicketReply and SavedAddress use stock_adjustment, ticket_reply and address).
Timestamps are added by database.create_document.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def id_field(prefix: str):
    return Field(default_factory=lambda: new_id(prefix), description="Public identifier")


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ReviewStatus(str, Enum):
    APPROVED = "Approved"
    PENDING = "Pending"
    FLAGGED = "Flagged"


class TicketStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class TicketPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Document(BaseModel):
    # enums are stored as their plain string values; unknown keys are rejected
    model_config = ConfigDict(use_enum_values=True, extra="forbid")


STAMPS = ("created_at", "updated_at")


def build(model, data):
    """Construct a model, reporting bad input as a 400."""
    try:
        return model(**data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise ValidationError(f"{field}: {first['msg']}" if field else first["msg"])


def apply_changes(model, current, changes):
    """Merge changes into a stored document and validate the whole result."""
    merged = {k: v for k, v in current.items() if k not in STAMPS}
    merged.update(changes)
    return build(model, merged)


class User(Document):
    id: str = id_field("user")
    email: EmailStr = Field(..., description="Login email, unique")
    password: str = Field(..., description="bcrypt hash, never plaintext")
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    is_admin: bool = False
    is_active: bool = True


class Category(Document):
    id: str = id_field("cat")
    name: str = Field(...)
    slug: str = Field(..., description="URL-safe identifier")
    description: str = ""
    image_url: Optional[str] = None
    parent_id: Optional[str] = Field(None, description="Parent category id")
    display_order: int = 0
    is_active: bool = True


class Product(Document):
    id: str = id_field("prod")
    name: str
    slug: str
    description: str = ""
    category_id: Optional[str] = None
    base_price: float = Field(..., ge=0)
    actual_MRP: Optional[float] = Field(None, ge=0)
    discounted_price: Optional[float] = Field(None, ge=0)
    percentage_discount: Optional[float] = Field(None, ge=0, le=100)
    images: List[str] = []
    tags: List[str] = []
    rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    stock_quantity: int = Field(0, ge=0)
    variants: Optional[Any] = None
    specifications: Optional[Dict[str, Any]] = None
    is_featured: bool = False
    is_new_arrival: bool = False
    is_hot_deal: bool = False
    has_offer: bool = False
    sku: Optional[str] = None
    brand: Optional[str] = None
    is_active: bool = True


class StockAdjustment(Document):
    id: str = id_field("adj")
    product_id: str
    adjustment: int
    reason: str
    created_by: Optional[str] = None


class Address(BaseModel):
    full_name: str
    street_address: str
    city: str
    state: str
    postal_code: str
    country: str
    phone: str


class SavedAddress(Document, Address):
    """An address kept in a user's address book."""
    id: str = id_field("addr")
    user_id: str
    is_default: bool = False


class OrderItem(BaseModel):
    id: str = id_field("item")
    product_id: str
    name: Optional[str] = None
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class Order(Document):
    id: str = id_field("order")
    user_id: str
    items: List[OrderItem]
    total: float = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PENDING
    shipping_address: Optional[Address] = None
    payment_method: Optional[str] = None
    delivery_method: Optional[str] = None


class Offer(Document):
    id: str = id_field("offer")
    title: str
    description: str = ""
    type: str = Field(..., description="e.g. bank, seasonal, coupon")
    discount_type: DiscountType
    discount_value: float = Field(..., ge=0)
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True
    image_url: Optional[str] = None
    code: Optional[str] = None
    min_purchase: Optional[float] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=0)

    @field_validator("valid_from", "valid_until")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # Mongo hands back naive datetimes
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)

    @model_validator(mode="after")
    def check_window(self):
        if self.valid_from > self.valid_until:
            raise ValueError("valid_from must not be after valid_until")
        return self


class Review(Document):
    id: str = id_field("review")
    product_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str
    status: ReviewStatus = ReviewStatus.PENDING
    reply: Optional[str] = None
    reply_date: Optional[datetime] = None


class Ticket(Document):
    id: str = id_field("ticket")
    user_id: str
    order_id: Optional[str] = None
    subject: str
    description: str
    priority: TicketPriority = TicketPriority.MEDIUM
    status: TicketStatus = TicketStatus.OPEN
    assigned_admin_id: Optional[str] = None
    attachments: List[str] = []


class TicketReply(Document):
    id: str = id_field("reply")
    ticket_id: str
    user_id: str
    message: str
    attachments: List[str] = []


class Transaction(Document):
    id: str = id_field("txn")
    order_id: str
    amount: float = Field(..., ge=0)
    currency: str = "INR"
    status: TransactionStatus = TransactionStatus.PENDING
    payment_method: str
    transaction_id: Optional[str] = None


# Request bodies

class SignupRequest(BaseModel):
    # optional so missing fields reach the handler and get a readable 400
    email: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class CategoryIn(BaseModel):
    name: str
    slug: str
    description: str = ""
    image_url: Optional[str] = None
    parent_id: Optional[str] = None
    display_order: int = 0
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    parent_id: Optional[str] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[str] = None
    base_price: Optional[float] = Field(None, ge=0)
    actual_MRP: Optional[float] = Field(None, ge=0)
    discounted_price: Optional[float] = Field(None, ge=0)
    percentage_discount: Optional[float] = Field(None, ge=0, le=100)
    images: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_featured: Optional[bool] = None
    is_new_arrival: Optional[bool] = None
    is_hot_deal: Optional[bool] = None
    has_offer: Optional[bool] = None
    sku: Optional[str] = None
    brand: Optional[str] = None
    is_active: Optional[bool] = None


class StockUpdate(BaseModel):
    product_id: str
    new_stock: int = Field(..., ge=0)


class StockAdjustmentIn(BaseModel):
    adjustment: int
    reason: str


class CartLine(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    items: List[CartLine] = Field(..., min_length=1)
    shipping_address: Optional[Address] = None
    # saved address of the caller, used when shipping_address is absent
    address_id: Optional[str] = None
    payment_method: Optional[str] = None
    delivery_method: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class ReviewIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str


class ReviewStatusUpdate(BaseModel):
    status: ReviewStatus


class ReviewReply(BaseModel):
    reply: str = Field(..., min_length=1)


class TicketIn(BaseModel):
    subject: str
    description: str
    order_id: Optional[str] = None
    priority: TicketPriority = TicketPriority.MEDIUM


class TicketUpdate(BaseModel):
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assigned_admin_id: Optional[str] = None


class TicketReplyIn(BaseModel):
    message: str = Field(..., min_length=1)


class UserStatusUpdate(BaseModel):
    is_active: bool


class AddressIn(Address):
    is_default: bool = False


class AddressUpdate(BaseModel):
    full_name: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    is_default: Optional[bool] = None


class TransactionIn(BaseModel):
    order_id: str
    amount: float = Field(..., ge=0)
    currency: str = "INR"
    status: TransactionStatus = TransactionStatus.PENDING
    payment_method: str
    transaction_id: Optional[str] = None


class TransactionStatusUpdate(BaseModel):
    status: TransactionStatus
    transaction_id: Optional[str] = None

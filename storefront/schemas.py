from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Literal
from datetime import datetime

# --- auth / users ---
class RegisterPayload(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str = ""

class LoginPayload(BaseModel):
    email: EmailStr
    password: str

class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

class RefreshRequest(BaseModel):
    refresh_token: str

class UserRead(BaseModel):
    id: int
    email: EmailStr
    full_name: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""
    avatar_url: str = ""
    is_admin: bool = False
    class Config: from_attributes = True

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None

# --- catalog ---
ProductStatusField = Literal["active", "inactive", "out_of_stock", "deleted"]

class ProductBase(BaseModel):
    name: str
    description: Optional[str] = ""
    category: str = "General"
    brand: str = "Generic"
    price_cents: int = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    status: ProductStatusField = "active"
    image_url: Optional[str] = ""
    sizes: List[str] = []
    available_sizes: List[str] = []
class ProductCreate(ProductBase): pass
class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    price_cents: Optional[int] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    status: Optional[ProductStatusField] = None
    image_url: Optional[str] = None
    sizes: Optional[List[str]] = None
    available_sizes: Optional[List[str]] = None
class ProductRead(ProductBase):
    id: int
    available_for_purchase: bool
    low_stock: bool
    created_at: Optional[datetime] = None
    class Config: from_attributes = True

# --- cart ---
class CartItemAdd(BaseModel):
    product_id: int
    size: str = "M"
    quantity: int = Field(default=1, ge=1)

class CartItemUpdate(BaseModel):
    quantity: int

class CartLineRead(BaseModel):
    id: str
    product_id: int
    size: str
    quantity: int
    name: str
    category: str
    brand: str
    price_cents: int
    stock: int
    status: str
    image_url: str
    in_stock: bool
    sizes: List[str] = []
    available_sizes: List[str] = []
    line_total_cents: int

class CartRead(BaseModel):
    items: List[CartLineRead] = []
    subtotal_cents: int = 0
    warning: Optional[str] = None

# --- checkout / orders ---
class ShippingAddress(BaseModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""

class CardIn(BaseModel):
    number: str
    expiry: str   # MM/YY
    cvc: str
    holder_name: str

class CheckoutRequest(BaseModel):
    shipping: ShippingAddress
    payment_method: Literal["card", "cash_on_delivery"] = "cash_on_delivery"
    shipping_option: str = "standard"
    card: Optional[CardIn] = None

class OrderItemRead(BaseModel):
    id: int
    product_id: Optional[int] = None
    size: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    product_name: str
    brand: str
    category: str
    image_url: str
    class Config: from_attributes = True

class OrderRead(BaseModel):
    id: int
    user_id: int
    order_number: str
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int
    currency: str
    status: str
    payment_status: str
    payment_method: str
    shipping_method: str
    shipping_address: dict
    payment_reference: Optional[str] = None
    created_at: datetime
    items: List[OrderItemRead] = []
    class Config: from_attributes = True

class OrderStatusUpdate(BaseModel):
    status: Literal["pending", "processing", "shipped", "delivered", "cancelled"]

class PaymentStatusUpdate(BaseModel):
    payment_status: Literal["pending", "paid", "refund_pending", "refunded"]

class StatsRead(BaseModel):
    total_orders: int
    processing_orders: int
    revenue_cents: int
    products_by_status: dict

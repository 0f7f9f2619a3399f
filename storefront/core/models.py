"""Pydantic models for the storefront API.

These models define the contracts between the HTTP layer, the gates and
the repository.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field, field_validator

# bcrypt only accepts passwords up to this many bytes
MAX_PASSWORD_BYTES = 72


def check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


# =============================================================================
# Enums
# =============================================================================


class Role(str, Enum):
    """User roles."""

    USER = "user"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    """Order lifecycle statuses."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# =============================================================================
# Identity
# =============================================================================


class TokenClaims(BaseModel):
    """Claims carried by an identity token."""

    id: int
    email: str
    role: Role
    iat: int
    exp: int
    jti: str


class User(BaseModel):
    """Persisted user record, including the password hash.

    Never return this model from an endpoint; use ``PublicUser``.
    """

    id: int
    name: str
    email: str
    password_hash: str
    role: Role = Role.USER
    approved: bool = True
    phone: str | None = None
    address: str | None = None
    bio: str | None = None
    profile_picture: str | None = None
    created_at: datetime
    updated_at: datetime

    def public(self) -> "PublicUser":
        """Return the user with secret fields stripped."""
        return PublicUser.model_validate(self.model_dump(exclude={"password_hash"}))


class PublicUser(BaseModel):
    """User record safe for API responses."""

    id: int
    name: str
    email: str
    role: Role
    approved: bool
    phone: str | None = None
    address: str | None = None
    bio: str | None = None
    profile_picture: str | None = None
    created_at: datetime
    updated_at: datetime


class RegisterInput(BaseModel):
    """Input for registering a new account."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    name: str | None = Field(default=None, max_length=120)
    username: str | None = Field(default=None, max_length=60)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return check_password_bytes(value)


class LoginInput(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    """Session issued on registration or login."""

    user: PublicUser
    token: str


class ProfileUpdateInput(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    phone: str | None = None
    address: str | None = None
    bio: str | None = None
    profile_picture: str | None = None


class PasswordChangeInput(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return check_password_bytes(value)


# =============================================================================
# Catalog
# =============================================================================


class ProductInput(BaseModel):
    """Input for creating a product."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    price: float = Field(..., ge=0)
    stock: int = Field(default=0, ge=0)
    category: str | None = None
    brand: str | None = None


class ProductUpdateInput(BaseModel):
    """Partial product update. Unset fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    stock: int | None = Field(default=None, ge=0)
    category: str | None = None
    brand: str | None = None


class Product(BaseModel):
    id: int
    name: str
    description: str
    price: float
    stock: int
    category: str | None = None
    brand: str | None = None
    created_at: datetime
    updated_at: datetime


# =============================================================================
# Orders
# =============================================================================


class OrderItemInput(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1)


class OrderInput(BaseModel):
    """Input for placing an order."""

    items: list[OrderItemInput] = Field(..., min_length=1)
    shipping_address: str = Field(..., min_length=1)
    phone: str | None = None


class OrderItem(BaseModel):
    product_id: int
    name: str
    price: float
    quantity: int


class Order(BaseModel):
    id: int
    user_id: int
    items: list[OrderItem]
    total: float
    status: OrderStatus
    shipping_address: str
    phone: str | None = None
    created_at: datetime
    updated_at: datetime


class OrderStatusInput(BaseModel):
    status: OrderStatus


# =============================================================================
# Responses
# =============================================================================


class ListResponse(BaseModel):
    """Count-plus-data listing envelope."""

    success: bool = True
    count: int
    data: list


class MessageResponse(BaseModel):
    success: bool = True
    message: str

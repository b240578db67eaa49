"""Müşteri eksik ürün (out-of-stock) talepleri için veri modelleri."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

UNKNOWN_CUSTOMER = "Bilinmeyen müşteri"
UNKNOWN_ADDRESS = "Bilinmeyen adres"
UNKNOWN_PRODUCT = "Bilinmeyen ürün"


class RequestStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PRODUCTION = "in_production"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    # Eski kayıtlarla uyum için saklanan değer "returned"
    REFUNDED = "returned"

    @property
    def is_closed(self) -> bool:
        return self in CLOSED_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


CLOSED_STATUSES = frozenset({RequestStatus.CANCELLED, RequestStatus.REFUNDED})
TERMINAL_STATUSES = frozenset(
    {RequestStatus.COMPLETED, RequestStatus.CANCELLED, RequestStatus.REFUNDED}
)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class Customer:
    customer_id: str
    name: str
    address: str
    phone: str = ""
    created_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())


@dataclass
class ProductSize:
    size_id: str
    size: str
    product_id: str


@dataclass
class Product:
    product_id: str
    name: str
    sku: str = ""
    sizes: list[ProductSize] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())

    @property
    def size_names(self) -> list[str]:
        return [s.size for s in self.sizes]


def generate_sku() -> str:
    return f"PRD-{uuid.uuid4().hex[:8].upper()}"


@dataclass(frozen=True)
class Operator:
    """İşlemi yapan kimliği doğrulanmış kullanıcı."""

    user_id: str
    name: str


# Güncellenebilir alanlar; ilişkiler id üzerinden karşılaştırılır
EDITABLE_FIELDS = ("customer", "product", "product_size", "quantity", "priority", "notes")
RELATION_FIELDS = ("customer", "product", "product_size")


@dataclass
class OutOfStockRequest:
    quantity: int
    customer: Optional[Customer] = None
    product: Optional[Product] = None
    product_size: Optional[ProductSize] = None
    created_by: str = ""
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: RequestStatus = RequestStatus.PENDING
    priority: Priority = Priority.MEDIUM
    notes: Optional[str] = None
    request_date: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    created_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    updated_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    updated_by: Optional[str] = None
    delivery_quantity: int = 0
    delivery_date: Optional[str] = None
    delivery_notes: Optional[str] = None
    actual_completion_date: Optional[str] = None
    refund_date: Optional[str] = None
    refund_reason: Optional[str] = None

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValueError(f"Talep miktarı negatif olamaz: {self.quantity}")
        if not 0 <= self.delivery_quantity <= self.quantity:
            raise ValueError(
                f"Teslim miktarı 0 ile {self.quantity} arasında olmalı: "
                f"{self.delivery_quantity}"
            )

    # --- Türetilmiş değerler ---

    @property
    def remaining_quantity(self) -> int:
        return max(self.quantity - self.delivery_quantity, 0)

    @property
    def needs_return(self) -> bool:
        return self.remaining_quantity > 0 and not self.status.is_closed

    @property
    def needs_delivery(self) -> bool:
        return self.needs_return

    @property
    def has_partial_return(self) -> bool:
        return 0 < self.delivery_quantity < self.quantity

    @property
    def is_fully_returned(self) -> bool:
        return self.quantity > 0 and self.delivery_quantity == self.quantity

    @property
    def customer_id(self) -> Optional[str]:
        return self.customer.customer_id if self.customer else None

    @property
    def product_id(self) -> Optional[str]:
        return self.product.product_id if self.product else None

    @property
    def product_size_id(self) -> Optional[str]:
        return self.product_size.size_id if self.product_size else None

    @property
    def customer_display_name(self) -> str:
        return self.customer.name if self.customer else UNKNOWN_CUSTOMER

    @property
    def customer_address(self) -> str:
        return self.customer.address if self.customer else UNKNOWN_ADDRESS

    @property
    def product_display_name(self) -> str:
        if not self.product:
            return UNKNOWN_PRODUCT
        if self.product_size:
            return f"{self.product.name}-{self.product_size.size}"
        return self.product.name

    @property
    def description(self) -> str:
        return f"{self.customer_display_name} - {self.product_display_name}"

    def snapshot(self, fields: Optional[Iterable[str]] = None) -> dict[str, Any]:
        """Verilen alanların mevcut değerlerini döndürür.

        İlişkiler (müşteri, ürün, beden) id değerlerine indirgenir, enum
        alanlar ham değerleriyle yazılır.
        """
        names = list(fields) if fields is not None else list(EDITABLE_FIELDS) + [
            "status",
            "delivery_quantity",
            "delivery_notes",
        ]
        return {name: comparable_value(name, getattr(self, name)) for name in names}


def comparable_value(name: str, value: Any) -> Any:
    """Alan değerini karşılaştırma/serileştirme için sade forma çevirir."""
    if name in RELATION_FIELDS:
        if value is None:
            return None
        if isinstance(value, Customer):
            return value.customer_id
        if isinstance(value, Product):
            return value.product_id
        if isinstance(value, ProductSize):
            return value.size_id
        return value
    if isinstance(value, Enum):
        return value.value
    return value

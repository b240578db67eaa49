"""Teslim/iade mutabakat kuralları.

Talep üzerinde değişiklik yapmadan önerilen işlemleri doğrular. Tüm
fonksiyonlar saf; talebi değiştirmez, ``ValidationResult`` döndürür.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stockout.models.out_of_stock import (
    EDITABLE_FIELDS,
    Customer,
    OutOfStockRequest,
    Priority,
    Product,
    ProductSize,
    RequestStatus,
    comparable_value,
)

# İlişki alanlarının kabul ettiği tipler (None her zaman geçerli)
RELATION_TYPES = {"customer": Customer, "product": Product, "product_size": ProductSize}


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    # Hatalı alan adları; hata sınıfını seçmek için kullanılır
    invalid_fields: list[str] = field(default_factory=list)


def is_quantity(value: Any) -> bool:
    """bool da int alt sınıfı olduğundan ayrıca elenir."""
    return isinstance(value, int) and not isinstance(value, bool)


def validate_delivery(request: OutOfStockRequest, proposed_quantity: int) -> ValidationResult:
    """Teslim miktarının (0, kalan] aralığında bir tam sayı olduğunu doğrular."""
    errors = []
    warnings = []

    if not is_quantity(proposed_quantity):
        errors.append(f"Teslim miktarı tam sayı olmalı: {proposed_quantity!r}")
    elif proposed_quantity <= 0:
        errors.append(f"Teslim miktarı pozitif olmalı: {proposed_quantity}")
    elif proposed_quantity > request.remaining_quantity:
        errors.append(
            f"Teslim miktarı kalan miktarı aşıyor: "
            f"kalan={request.remaining_quantity}, istenen={proposed_quantity}"
        )

    if request.status.is_closed:
        errors.append(f"Kapalı talebe teslim yapılamaz: {request.status.value}")

    if not errors and proposed_quantity == request.remaining_quantity:
        warnings.append("Talep bu teslimle tamamlanacak")

    return ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=warnings)


def compute_changed_fields(request: OutOfStockRequest, proposed_fields: dict[str, Any]) -> list[str]:
    """Değeri gerçekten değişen alanları sabit sırayla döndürür."""
    changed = []
    for name in EDITABLE_FIELDS:
        if name not in proposed_fields:
            continue
        old = comparable_value(name, getattr(request, name))
        new = comparable_value(name, proposed_fields[name])
        if old != new:
            changed.append(name)
    return changed


def validate_field_update(request: OutOfStockRequest, proposed_fields: dict[str, Any]) -> ValidationResult:
    """Önerilen alan değerlerini doğrular.

    Terminal durumdaki talebin miktarı değiştirilemez; aksi halde tamamlanmış
    talep kalan miktarla ``completed`` olarak kalırdı.
    """
    errors = []
    invalid = []

    unknown = sorted(set(proposed_fields) - set(EDITABLE_FIELDS))
    if unknown:
        errors.append(f"Güncellenemeyen alan(lar): {', '.join(unknown)}")
        invalid.extend(unknown)

    if "quantity" in proposed_fields:
        quantity = proposed_fields["quantity"]
        if not is_quantity(quantity) or quantity < 0:
            errors.append(f"Miktar negatif olmayan bir tam sayı olmalı: {quantity!r}")
            invalid.append("quantity")
        elif quantity < request.delivery_quantity:
            errors.append(
                f"Miktar teslim edilenden az olamaz: "
                f"teslim={request.delivery_quantity}, yeni miktar={quantity}"
            )
            invalid.append("quantity")
        elif quantity != request.quantity and request.status.is_terminal:
            errors.append(f"{request.status.value} durumundaki talebin miktarı değiştirilemez")
            invalid.append("quantity")

    for name, expected in RELATION_TYPES.items():
        value = proposed_fields.get(name)
        if value is not None and not isinstance(value, expected):
            errors.append(f"Geçersiz {name} değeri: {expected.__name__} bekleniyordu")
            invalid.append(name)

    if "priority" in proposed_fields and not isinstance(proposed_fields["priority"], Priority):
        errors.append(f"Geçersiz öncelik: {proposed_fields['priority']}")
        invalid.append("priority")

    notes = proposed_fields.get("notes")
    if notes is not None and not isinstance(notes, str):
        errors.append("Not metin olmalı")
        invalid.append("notes")

    return ValidationResult(is_valid=len(errors) == 0, errors=errors, invalid_fields=invalid)


def validate_status_change(
    request: OutOfStockRequest,
    new_status: RequestStatus,
    force: bool = False,
) -> ValidationResult:
    """Durum geçişini doğrular.

    Terminal durumdan çıkılamaz. Kalan miktar varken ``completed`` durumuna
    yalnızca ``force`` ile geçilebilir.
    """
    errors = []
    warnings = []

    if request.status == new_status:
        errors.append(f"Talep zaten {new_status.value} durumunda")
    elif request.status.is_terminal:
        errors.append(f"Terminal durumdan çıkılamaz: {request.status.value}")

    if new_status == RequestStatus.COMPLETED and request.remaining_quantity > 0:
        if force:
            warnings.append(
                f"Kalan miktar varken zorla tamamlandı: kalan={request.remaining_quantity}"
            )
        else:
            errors.append(
                f"Kalan miktar varken tamamlanamaz: kalan={request.remaining_quantity}"
            )

    return ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=warnings)

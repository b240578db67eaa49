"""Müşteri ve ürün kayıtları üzerinde audit'li değişiklik işlemleri.

CSV'den içe aktarılan listeler de burada tek seferde kaydedilir; her kayıt
için bir ``create`` ve toplu işlem için bir özet kaydı yazılır.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from stockout.models.audit import (
    AuditLogEntry,
    BatchOperationDetails,
    CreateDetails,
    DeleteDetails,
    EntityType,
    OperationType,
    UpdateDetails,
)
from stockout.models.out_of_stock import Customer, Operator, Product, ProductSize, generate_sku
from stockout.repository.base import CustomerRepository, ProductRepository, RecordRepository
from stockout.services.audit_logger import AuditLogger, require_operator
from stockout.services.export import ImportResult
from stockout.services.reconciliation import InvalidFieldValueError, UnknownFieldError

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = ("name", "address", "phone")
PRODUCT_FIELDS = ("name", "sku", "sizes")


def customer_snapshot(customer: Customer, fields: Iterable[str] = CUSTOMER_FIELDS) -> dict[str, Any]:
    return {name: getattr(customer, name) for name in fields}


def product_snapshot(product: Product, fields: Iterable[str] = PRODUCT_FIELDS) -> dict[str, Any]:
    # bedenler etiketleriyle yazılır
    return {name: product.size_names if name == "sizes" else getattr(product, name) for name in fields}


def _clean_labels(labels: Iterable[str]) -> list[str]:
    cleaned: list[str] = []
    for label in labels:
        label = label.strip()
        if label and label not in cleaned:
            cleaned.append(label)
    return cleaned


@dataclass
class CatalogImportResult:
    created: list = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    item_entries: list[AuditLogEntry] = field(default_factory=list)
    batch_entry: Optional[AuditLogEntry] = None


class CatalogService:
    """Müşteri/ürün oluşturma, güncelleme, silme ve içe aktarma."""

    def __init__(
        self,
        customers: CustomerRepository,
        products: ProductRepository,
        audit_logger: AuditLogger,
    ):
        self.customers = customers
        self.products = products
        self.audit = audit_logger

    # --- Müşteri ---

    def create_customer(self, name: str, address: str, operator: Operator, phone: str = "") -> Customer:
        operator = require_operator(operator)
        if not name.strip() or not address.strip():
            raise InvalidFieldValueError("Müşteri adı ve adresi boş olamaz")
        customer = Customer(
            customer_id=str(uuid.uuid4()), name=name.strip(), address=address.strip(), phone=phone.strip()
        )
        self.customers.save(customer)
        self._log_create(EntityType.CUSTOMER, customer.customer_id, customer.name,
                         customer_snapshot(customer), operator)
        logger.info("Müşteri oluşturuldu: %s", customer.customer_id)
        return customer

    def update_customer(
        self, customer: Customer, proposed_fields: dict[str, Any], operator: Operator
    ) -> Optional[AuditLogEntry]:
        """Değişen alanları uygular; değişiklik yoksa None döner."""
        operator = require_operator(operator)
        self._check_fields(proposed_fields, CUSTOMER_FIELDS)
        for name, value in proposed_fields.items():
            if not isinstance(value, str):
                raise InvalidFieldValueError(f"{name} metin olmalı")
            if name in ("name", "address") and not value.strip():
                raise InvalidFieldValueError(f"{name} boş olamaz")

        changed = [n for n in CUSTOMER_FIELDS if n in proposed_fields and proposed_fields[n] != getattr(customer, n)]
        if not changed:
            return None

        before = customer_snapshot(customer, changed)
        backup = copy.copy(customer)
        for name in changed:
            setattr(customer, name, proposed_fields[name])
        _save_or_restore(self.customers, customer, backup)
        return self._log_update(EntityType.CUSTOMER, customer.customer_id, customer.name, before,
                                customer_snapshot(customer, changed), changed, operator)

    def delete_customer(self, customer: Customer, operator: Operator) -> AuditLogEntry:
        operator = require_operator(operator)
        self.customers.delete(customer.customer_id)
        logger.info("Müşteri silindi: %s", customer.customer_id)
        return self._log_delete(EntityType.CUSTOMER, customer.customer_id, customer.name,
                                customer_snapshot(customer), operator)

    # --- Ürün ---

    def create_product(
        self, name: str, operator: Operator, sku: str = "", sizes: Iterable[str] = ()
    ) -> Product:
        operator = require_operator(operator)
        if not name.strip():
            raise InvalidFieldValueError("Ürün adı boş olamaz")
        product = Product(product_id=str(uuid.uuid4()), name=name.strip(), sku=sku.strip() or generate_sku())
        product.sizes = self._build_sizes(product, _clean_labels(sizes))
        self.products.save(product)
        self._log_create(EntityType.PRODUCT, product.product_id, product.name,
                         product_snapshot(product), operator)
        logger.info("Ürün oluşturuldu: %s (%s beden)", product.product_id, len(product.sizes))
        return product

    def update_product(
        self, product: Product, proposed_fields: dict[str, Any], operator: Operator
    ) -> Optional[AuditLogEntry]:
        """``sizes`` etiket listesi olarak verilir; korunan bedenlerin id'si değişmez."""
        operator = require_operator(operator)
        self._check_fields(proposed_fields, PRODUCT_FIELDS)
        proposed = dict(proposed_fields)
        for name in ("name", "sku"):
            if name in proposed and not isinstance(proposed[name], str):
                raise InvalidFieldValueError(f"{name} metin olmalı")
        if "name" in proposed and not proposed["name"].strip():
            raise InvalidFieldValueError("Ürün adı boş olamaz")
        if "sizes" in proposed:
            labels = proposed["sizes"]
            if isinstance(labels, str) or not all(isinstance(s, str) for s in labels):
                raise InvalidFieldValueError("Bedenler metin listesi olmalı")
            proposed["sizes"] = _clean_labels(labels)

        current = product_snapshot(product)
        changed = [n for n in PRODUCT_FIELDS if n in proposed and proposed[n] != current[n]]
        if not changed:
            return None

        backup = copy.copy(product)
        for name in changed:
            if name == "sizes":
                product.sizes = self._build_sizes(product, proposed["sizes"])
            else:
                setattr(product, name, proposed[name])
        _save_or_restore(self.products, product, backup)
        return self._log_update(EntityType.PRODUCT, product.product_id, product.name,
                                {n: current[n] for n in changed}, product_snapshot(product, changed),
                                changed, operator)

    def delete_product(self, product: Product, operator: Operator) -> AuditLogEntry:
        operator = require_operator(operator)
        self.products.delete(product.product_id)
        logger.info("Ürün silindi: %s", product.product_id)
        return self._log_delete(EntityType.PRODUCT, product.product_id, product.name,
                                product_snapshot(product), operator)

    @staticmethod
    def _build_sizes(product: Product, labels: list[str]) -> list[ProductSize]:
        existing = {s.size: s for s in product.sizes}
        return [
            existing.get(label) or ProductSize(size_id=str(uuid.uuid4()), size=label, product_id=product.product_id)
            for label in labels
        ]

    # --- İçe aktarma ---

    def import_customers(self, parsed: ImportResult, operator: Operator) -> CatalogImportResult:
        return self._import(
            parsed, operator, self.customers, EntityType.CUSTOMER,
            key=lambda c: c.customer_id, describe=lambda c: c.name, snapshot=customer_snapshot,
        )

    def import_products(self, parsed: ImportResult, operator: Operator) -> CatalogImportResult:
        return self._import(
            parsed, operator, self.products, EntityType.PRODUCT,
            key=lambda p: p.product_id, describe=lambda p: p.name, snapshot=product_snapshot,
        )

    def _import(self, parsed, operator, repository, entity_type, key, describe, snapshot) -> CatalogImportResult:
        """Ayrıştırılmış kayıtları tek seferde kaydeder. Satır hataları özet
        kaydına yazılır; hiç kayıt yoksa audit oluşmaz."""
        operator = require_operator(operator)
        result = CatalogImportResult(created=list(parsed.items), errors=list(parsed.errors))
        if not result.created:
            return result

        repository.save_many(result.created)
        batch_id = str(uuid.uuid4())
        for record in result.created:
            result.item_entries.append(
                self._log_create(entity_type, key(record), describe(record), snapshot(record), operator, batch_id)
            )
        result.batch_entry = self.audit.log_batch(
            OperationType.BATCH_UPDATE,
            operator=operator,
            details=BatchOperationDetails(
                operation="import",
                affected_items=[key(r) for r in result.created],
                total_count=len(result.created),
                change_details={"errors": result.errors},
            ),
            batch_id=batch_id,
            entity_type=entity_type,
        )
        logger.info("İçe aktarma (%s): %s kayıt, %s hata", entity_type.value, len(result.created), len(result.errors))
        return result

    # --- Audit ---

    @staticmethod
    def _check_fields(proposed_fields: dict[str, Any], allowed: tuple[str, ...]) -> None:
        unknown = sorted(set(proposed_fields) - set(allowed))
        if unknown:
            raise UnknownFieldError(f"Güncellenemeyen alan(lar): {', '.join(unknown)}")

    def _log_create(self, entity_type, entity_id, description, values, operator, batch_id=None) -> AuditLogEntry:
        return self.audit.log(
            OperationType.CREATE,
            entity_id=entity_id,
            entity_description=description,
            operator=operator,
            details=CreateDetails(after_values=values),
            entity_type=entity_type,
            batch_id=batch_id,
        )

    def _log_update(self, entity_type, entity_id, description, before, after, changed, operator) -> AuditLogEntry:
        return self.audit.log(
            OperationType.UPDATE,
            entity_id=entity_id,
            entity_description=description,
            operator=operator,
            details=UpdateDetails(before_values=before, after_values=after, changed_fields=changed),
            entity_type=entity_type,
        )

    def _log_delete(self, entity_type, entity_id, description, values, operator) -> AuditLogEntry:
        return self.audit.log(
            OperationType.DELETE,
            entity_id=entity_id,
            entity_description=description,
            operator=operator,
            details=DeleteDetails(before_values=values),
            entity_type=entity_type,
        )


def _save_or_restore(repository: RecordRepository, record: Any, backup: Any) -> None:
    try:
        repository.save(record)
    except Exception:
        record.__dict__.update(backup.__dict__)
        raise

"""Eksik ürün talepleri üzerinde değişiklik işlemleri.

- Tekil ve toplu talep oluşturma
- Kısmi/tam teslim (iade) işleme
- Alan güncelleme (yalnızca değişen alanlar audit'e yazılır)
- Durum/öncelik değişikliği, iade (refund) ve silme

Her başarılı değişiklik tam olarak bir audit kaydı üretir. Toplu işlemler
en iyi çaba ile çalışır: geçersiz kalemler atlanır, diğerleri işlenir.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional, Union

from stockout.models.audit import (
    AuditLogEntry,
    BatchOperationDetails,
    CreateDetails,
    DeleteDetails,
    OperationType,
    PriorityChangeDetails,
    ReturnProcessDetails,
    StatusChangeDetails,
    UpdateDetails,
)
from stockout.models.out_of_stock import (
    EDITABLE_FIELDS,
    Customer,
    Operator,
    OutOfStockRequest,
    Priority,
    Product,
    ProductSize,
    RequestStatus,
)
from stockout.repository.base import OutOfStockRepository, PersistenceError
from stockout.services.audit_logger import AuditLogger, require_operator
from stockout.services.reconciliation_rules import (
    ValidationResult,
    compute_changed_fields,
    is_quantity,
    validate_delivery,
    validate_field_update,
    validate_status_change,
)

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """İşlem validasyon hatası. Talep değiştirilmeden bırakılır."""

    def __init__(self, message: str, result: Optional[ValidationResult] = None):
        super().__init__(message)
        self.result = result or ValidationResult(is_valid=False, errors=[message])

    @property
    def errors(self) -> list[str]:
        return self.result.errors


class DeliveryRejectedError(ValidationError):
    """Teslim miktarı geçersiz ya da talep kapalı."""
    pass


class InvalidQuantityError(ValidationError):
    pass


class InvalidStatusTransitionError(ValidationError):
    pass


class UnknownFieldError(ValidationError):
    pass


class InvalidFieldValueError(ValidationError):
    """Alan değeri beklenen tipte değil (ilişki, öncelik, not)."""
    pass


@dataclass
class DeliveryOperation:
    request: OutOfStockRequest
    quantity: int
    notes: Optional[str] = None


@dataclass
class CreationSpec:
    customer: Optional[Customer]
    product: Optional[Product]
    quantity: int
    product_size: Optional[ProductSize] = None
    priority: Priority = Priority.MEDIUM
    notes: Optional[str] = None


@dataclass
class BatchItemFailure:
    request_id: str
    errors: list[str]


@dataclass
class BatchResult:
    succeeded: list[OutOfStockRequest] = field(default_factory=list)
    failed: list[BatchItemFailure] = field(default_factory=list)
    item_entries: list[AuditLogEntry] = field(default_factory=list)
    batch_entry: Optional[AuditLogEntry] = None

    @property
    def succeeded_ids(self) -> list[str]:
        return [r.request_id for r in self.succeeded]

    @property
    def failed_ids(self) -> list[str]:
        return [f.request_id for f in self.failed]


def _now() -> str:
    return datetime.utcnow().isoformat()


def _restore(request: OutOfStockRequest, backup: OutOfStockRequest) -> None:
    request.__dict__.update(backup.__dict__)


class ReconciliationService:
    """Talep değişikliklerini kalıcılık ve audit ile birlikte yürütür."""

    def __init__(self, repository: OutOfStockRepository, audit_logger: AuditLogger):
        self.repository = repository
        self.audit = audit_logger

    def _save_or_restore(self, request: OutOfStockRequest, backup: OutOfStockRequest) -> None:
        """Kayıt başarısızsa talep bellekte de eski haline döner, hata iletilir."""
        try:
            self.repository.save(request)
        except Exception:
            _restore(request, backup)
            raise

    # --- Oluşturma ---

    def create_request(
        self,
        customer: Optional[Customer],
        product: Optional[Product],
        quantity: int,
        operator: Operator,
        product_size: Optional[ProductSize] = None,
        priority: Priority = Priority.MEDIUM,
        notes: Optional[str] = None,
    ) -> OutOfStockRequest:
        operator = require_operator(operator)
        spec = CreationSpec(customer, product, quantity, product_size, priority, notes)
        request = self._build_request(spec, operator)
        self.repository.save(request)
        self._log_create(request, operator)
        logger.info("Talep oluşturuldu: %s (%s adet)", request.request_id, quantity)
        return request

    def create_batch(self, specs: Iterable[CreationSpec], operator: Operator) -> BatchResult:
        operator = require_operator(operator)
        result = BatchResult()
        for index, spec in enumerate(specs):
            try:
                result.succeeded.append(self._build_request(spec, operator))
            except ValidationError as e:
                logger.warning("Toplu oluşturmada kalem %s atlandı: %s", index, e)
                result.failed.append(BatchItemFailure(request_id=f"#{index}", errors=e.errors))

        if not result.succeeded:
            return result

        self.repository.save_many(result.succeeded)
        batch_id = str(uuid.uuid4())
        for request in result.succeeded:
            result.item_entries.append(self._log_create(request, operator, batch_id=batch_id))
        result.batch_entry = self._log_batch_summary(
            OperationType.BATCH_UPDATE, "create", result, operator, batch_id
        )
        return result

    def _build_request(self, spec: CreationSpec, operator: Operator) -> OutOfStockRequest:
        if not is_quantity(spec.quantity) or spec.quantity <= 0:
            raise InvalidQuantityError(f"Talep miktarı pozitif olmalı: {spec.quantity}")
        return OutOfStockRequest(
            customer=spec.customer,
            product=spec.product,
            product_size=spec.product_size,
            quantity=spec.quantity,
            priority=spec.priority,
            notes=spec.notes,
            created_by=operator.user_id,
        )

    def _log_create(
        self, request: OutOfStockRequest, operator: Operator, batch_id: Optional[str] = None
    ) -> AuditLogEntry:
        return self.audit.log(
            OperationType.CREATE,
            entity_id=request.request_id,
            entity_description=request.description,
            operator=operator,
            details=CreateDetails(after_values=request.snapshot()),
            batch_id=batch_id,
        )

    # --- Teslim / iade işleme ---

    def apply_delivery(
        self,
        request: OutOfStockRequest,
        proposed_quantity: int,
        notes: Optional[str],
        operator: Operator,
    ) -> AuditLogEntry:
        """Talebe teslim miktarı ekler.

        Geçersiz miktarda ``DeliveryRejectedError`` fırlatır ve talebe
        dokunmaz. Kayıt hatasında talep eski haline döner ve
        ``PersistenceError`` iletilir.
        """
        operator = require_operator(operator)
        backup = copy.copy(request)
        previous = self._deliver(request, proposed_quantity, notes, operator)
        self._save_or_restore(request, backup)
        return self._log_delivery(request, proposed_quantity, notes, previous, operator)

    def apply_batch(
        self,
        operations: Iterable[Union[DeliveryOperation, tuple]],
        operator: Operator,
    ) -> BatchResult:
        """Toplu teslim. Her kalem kendi talebine göre bağımsızdır; hatalı
        kalem diğerlerini geri almaz. Başarılı kalemler tek seferde kaydedilir.

        Aynı talep bir toplu işlemde yalnızca bir kez yer alabilir; tekrar
        eden kalemler başarısız sayılır.
        """
        operator = require_operator(operator)
        result = BatchResult()
        applied: list[tuple[DeliveryOperation, int, OutOfStockRequest]] = []
        seen: set[str] = set()

        for raw in operations:
            op = raw if isinstance(raw, DeliveryOperation) else DeliveryOperation(*raw)
            if op.request.request_id in seen:
                result.failed.append(
                    BatchItemFailure(op.request.request_id, ["Talep bu toplu işlemde birden fazla kez yer alıyor"])
                )
                continue
            seen.add(op.request.request_id)
            backup = copy.copy(op.request)
            try:
                previous = self._deliver(op.request, op.quantity, op.notes, operator)
            except ValidationError as e:
                result.failed.append(BatchItemFailure(op.request.request_id, e.errors))
                continue
            applied.append((op, previous, backup))
            result.succeeded.append(op.request)

        if not applied:
            return result

        try:
            self.repository.save_many(result.succeeded)
        except PersistenceError:
            for op, _, backup in reversed(applied):
                _restore(op.request, backup)
            raise

        batch_id = str(uuid.uuid4())
        for op, previous, _ in applied:
            result.item_entries.append(
                self._log_delivery(op.request, op.quantity, op.notes, previous, operator, batch_id)
            )
        result.batch_entry = self._log_batch_summary(
            OperationType.BATCH_UPDATE,
            "return_process",
            result,
            operator,
            batch_id,
            change_details={"quantities": {op.request.request_id: op.quantity for op, _, _ in applied}},
        )
        logger.info(
            "Toplu teslim: %s başarılı, %s atlandı", len(result.succeeded), len(result.failed)
        )
        return result

    def _deliver(
        self,
        request: OutOfStockRequest,
        quantity: int,
        notes: Optional[str],
        operator: Operator,
    ) -> int:
        """Doğrular ve talebe uygular; önceki teslim miktarını döndürür."""
        validation = validate_delivery(request, quantity)
        if not validation.is_valid:
            logger.warning("Teslim reddedildi [%s]: %s", request.request_id, validation.errors)
            raise DeliveryRejectedError("; ".join(validation.errors), validation)

        previous = request.delivery_quantity
        now = _now()
        request.delivery_quantity += quantity
        request.delivery_date = now
        if notes:
            request.delivery_notes = f"{request.delivery_notes}\n{notes}" if request.delivery_notes else notes
        request.updated_at = now
        request.updated_by = operator.user_id

        if request.is_fully_returned:
            request.status = RequestStatus.COMPLETED
            request.actual_completion_date = now
        return previous

    def _log_delivery(
        self,
        request: OutOfStockRequest,
        quantity: int,
        notes: Optional[str],
        previous: int,
        operator: Operator,
        batch_id: Optional[str] = None,
    ) -> AuditLogEntry:
        return self.audit.log(
            OperationType.RETURN_PROCESS,
            entity_id=request.request_id,
            entity_description=request.description,
            operator=operator,
            details=ReturnProcessDetails(
                return_quantity=quantity,
                return_notes=notes or "",
                previous_return_quantity=previous,
                new_total_return_quantity=request.delivery_quantity,
                remaining_quantity=request.remaining_quantity,
            ),
            batch_id=batch_id,
        )

    # --- Alan güncelleme ---

    def update_fields(
        self,
        request: OutOfStockRequest,
        proposed_fields: dict[str, Any],
        operator: Operator,
        additional_info: Optional[str] = None,
    ) -> Optional[AuditLogEntry]:
        """Değişen alanları uygular. Hiçbir alan değişmiyorsa None döner,
        audit kaydı ve kayıt yapılmaz.

        Miktar teslim edilene eşitlenirse talep ``completed`` olur; durum
        değişikliği aynı ``update`` kaydında ``status`` alanı olarak yer alır.
        """
        operator = require_operator(operator)
        validation = validate_field_update(request, proposed_fields)
        if not validation.is_valid:
            message = "; ".join(validation.errors)
            invalid = set(validation.invalid_fields)
            if invalid - set(EDITABLE_FIELDS):
                raise UnknownFieldError(message, validation)
            if "quantity" in invalid:
                raise InvalidQuantityError(message, validation)
            raise InvalidFieldValueError(message, validation)

        changed = compute_changed_fields(request, proposed_fields)
        if not changed:
            return None

        before = request.snapshot(changed + ["status"])
        backup = copy.copy(request)
        now = _now()
        for name in changed:
            setattr(request, name, proposed_fields[name])
        if "quantity" in changed and request.is_fully_returned and not request.status.is_terminal:
            request.status = RequestStatus.COMPLETED
            request.actual_completion_date = now
            changed.append("status")
        request.updated_at = now
        request.updated_by = operator.user_id
        self._save_or_restore(request, backup)

        return self.audit.log(
            OperationType.UPDATE,
            entity_id=request.request_id,
            entity_description=request.description,
            operator=operator,
            details=UpdateDetails(
                before_values={name: before[name] for name in changed},
                after_values=request.snapshot(changed),
                changed_fields=changed,
                additional_info=additional_info,
            ),
        )

    # --- Durum / öncelik ---

    def change_status(
        self,
        request: OutOfStockRequest,
        new_status: RequestStatus,
        operator: Operator,
        force: bool = False,
        reason: str = "",
    ) -> AuditLogEntry:
        operator = require_operator(operator)
        backup = copy.copy(request)
        from_status = self._transition(request, new_status, operator, force)
        self._save_or_restore(request, backup)
        return self._log_status(request, from_status, reason, force, operator)

    def process_refund(self, request: OutOfStockRequest, reason: str, operator: Operator) -> AuditLogEntry:
        """Talebi tedarikçiye iade/iptal olarak kapatır."""
        operator = require_operator(operator)
        backup = copy.copy(request)
        from_status = self._transition(request, RequestStatus.REFUNDED, operator)
        request.refund_date = request.updated_at
        request.refund_reason = reason
        self._save_or_restore(request, backup)
        return self._log_status(request, from_status, reason, False, operator)

    def batch_update_status(
        self,
        requests: Iterable[OutOfStockRequest],
        new_status: RequestStatus,
        operator: Operator,
        reason: str = "",
    ) -> BatchResult:
        operator = require_operator(operator)
        result = BatchResult()
        applied: list[tuple[OutOfStockRequest, RequestStatus, OutOfStockRequest]] = []
        for request in requests:
            backup = copy.copy(request)
            try:
                from_status = self._transition(request, new_status, operator)
            except ValidationError as e:
                result.failed.append(BatchItemFailure(request.request_id, e.errors))
                continue
            applied.append((request, from_status, backup))
            result.succeeded.append(request)

        if not applied:
            return result
        try:
            self.repository.save_many(result.succeeded)
        except PersistenceError:
            for request, _, backup in reversed(applied):
                _restore(request, backup)
            raise

        batch_id = str(uuid.uuid4())
        for request, from_status, _ in applied:
            result.item_entries.append(
                self._log_status(request, from_status, reason, False, operator, batch_id)
            )
        result.batch_entry = self._log_batch_summary(
            OperationType.BATCH_UPDATE,
            "status_change",
            result,
            operator,
            batch_id,
            change_details={"status": new_status.value},
        )
        return result

    def batch_update_priority(
        self,
        requests: Iterable[OutOfStockRequest],
        priority: Priority,
        operator: Operator,
    ) -> BatchResult:
        """Önceliği zaten aynı olan talepler değişiklik sayılmaz ve atlanır."""
        operator = require_operator(operator)
        result = BatchResult()
        previous: dict[str, Priority] = {}
        backups: list[tuple[OutOfStockRequest, OutOfStockRequest]] = []
        now = _now()
        for request in requests:
            if request.priority == priority or request.request_id in previous:
                continue
            previous[request.request_id] = request.priority
            backups.append((request, copy.copy(request)))
            request.priority = priority
            request.updated_at = now
            request.updated_by = operator.user_id
            result.succeeded.append(request)

        if not result.succeeded:
            return result
        try:
            self.repository.save_many(result.succeeded)
        except PersistenceError:
            for request, backup in backups:
                _restore(request, backup)
            raise

        batch_id = str(uuid.uuid4())
        for request in result.succeeded:
            result.item_entries.append(
                self.audit.log(
                    OperationType.PRIORITY_CHANGE,
                    entity_id=request.request_id,
                    entity_description=request.description,
                    operator=operator,
                    details=PriorityChangeDetails(
                        from_priority=previous[request.request_id].value,
                        to_priority=priority.value,
                    ),
                    batch_id=batch_id,
                )
            )
        result.batch_entry = self._log_batch_summary(
            OperationType.BATCH_UPDATE,
            "priority_change",
            result,
            operator,
            batch_id,
            change_details={"priority": priority.value},
        )
        return result

    def _transition(
        self,
        request: OutOfStockRequest,
        new_status: RequestStatus,
        operator: Operator,
        force: bool = False,
    ) -> RequestStatus:
        validation = validate_status_change(request, new_status, force)
        if not validation.is_valid:
            raise InvalidStatusTransitionError("; ".join(validation.errors), validation)
        for warning in validation.warnings:
            logger.warning("Durum değişikliği [%s]: %s", request.request_id, warning)

        from_status = request.status
        now = _now()
        request.status = new_status
        request.updated_at = now
        request.updated_by = operator.user_id
        if new_status.is_terminal:
            request.actual_completion_date = now
        return from_status

    def _log_status(
        self,
        request: OutOfStockRequest,
        from_status: RequestStatus,
        reason: str,
        forced: bool,
        operator: Operator,
        batch_id: Optional[str] = None,
    ) -> AuditLogEntry:
        return self.audit.log(
            OperationType.STATUS_CHANGE,
            entity_id=request.request_id,
            entity_description=request.description,
            operator=operator,
            details=StatusChangeDetails(
                from_status=from_status.value,
                to_status=request.status.value,
                reason=reason,
                forced=forced,
            ),
            batch_id=batch_id,
        )

    # --- Silme ---

    def delete_request(self, request: OutOfStockRequest, operator: Operator) -> AuditLogEntry:
        """Talep silinir, ardından silinen değerlerle audit kaydı yazılır.

        Silme başarısızsa audit kaydı oluşmaz ve ``PersistenceError`` iletilir.
        """
        operator = require_operator(operator)
        self.repository.delete(request.request_id)
        logger.info("Talep silindi: %s", request.request_id)
        return self._log_delete(request, operator)

    def batch_delete(self, requests: Iterable[OutOfStockRequest], operator: Operator) -> BatchResult:
        """Talepleri sırayla siler. Bir silme başarısız olursa o ana kadar
        silinenler için özet kaydı yine yazılır, sonra hata iletilir."""
        operator = require_operator(operator)
        result = BatchResult()
        batch_id = str(uuid.uuid4())
        seen: set[str] = set()
        try:
            for request in requests:
                if request.request_id in seen:
                    continue
                seen.add(request.request_id)
                try:
                    self.repository.delete(request.request_id)
                except PersistenceError as e:
                    result.failed.append(BatchItemFailure(request.request_id, [str(e)]))
                    raise
                result.succeeded.append(request)
                result.item_entries.append(self._log_delete(request, operator, batch_id))
        finally:
            if result.succeeded:
                result.batch_entry = self._log_batch_summary(
                    OperationType.BATCH_DELETE, "delete", result, operator, batch_id
                )
        return result

    def _log_delete(
        self, request: OutOfStockRequest, operator: Operator, batch_id: Optional[str] = None
    ) -> AuditLogEntry:
        return self.audit.log(
            OperationType.DELETE,
            entity_id=request.request_id,
            entity_description=request.description,
            operator=operator,
            details=DeleteDetails(before_values=request.snapshot()),
            batch_id=batch_id,
        )

    def _log_batch_summary(
        self,
        operation_type: OperationType,
        operation: str,
        result: BatchResult,
        operator: Operator,
        batch_id: str,
        change_details: Optional[dict[str, Any]] = None,
    ) -> AuditLogEntry:
        return self.audit.log_batch(
            operation_type,
            operator=operator,
            details=BatchOperationDetails(
                operation=operation,
                affected_items=result.succeeded_ids,
                total_count=len(result.succeeded),
                failed_items=result.failed_ids,
                change_details=change_details or {},
            ),
            batch_id=batch_id,
        )

from stockout.services.audit_logger import AuditLogger, MissingOperatorError
from stockout.services.reconciliation import (
    BatchResult,
    CreationSpec,
    DeliveryOperation,
    DeliveryRejectedError,
    InvalidFieldValueError,
    InvalidQuantityError,
    InvalidStatusTransitionError,
    ReconciliationService,
    UnknownFieldError,
    ValidationError,
)
from stockout.services.catalog import CatalogImportResult, CatalogService


__all__ = [
    "AuditLogger",
    "BatchResult",
    "CatalogImportResult",
    "CatalogService",
    "CreationSpec",
    "DeliveryOperation",
    "DeliveryRejectedError",
    "InvalidFieldValueError",
    "InvalidQuantityError",
    "InvalidStatusTransitionError",
    "MissingOperatorError",
    "ReconciliationService",
    "UnknownFieldError",
    "ValidationError",
]

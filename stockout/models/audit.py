"""Audit log veri modelleri.

Her işlem tipi kendi detay tipini taşır. Detaylar ``kind`` etiketiyle
serileştirilir ve ``details_from_dict`` ile tipine göre geri okunur.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional, Union


class OperationType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    STATUS_CHANGE = "status_change"
    PRIORITY_CHANGE = "priority_change"
    RETURN_PROCESS = "return_process"
    BATCH_UPDATE = "batch_update"
    BATCH_DELETE = "batch_delete"


class EntityType(str, Enum):
    CUSTOMER_OUT_OF_STOCK = "customer_out_of_stock"
    CUSTOMER = "customer"
    PRODUCT = "product"
    RETURN_GOODS = "return_goods"


@dataclass
class CreateDetails:
    kind: ClassVar[str] = "create"
    after_values: dict[str, Any]


@dataclass
class UpdateDetails:
    kind: ClassVar[str] = "update"
    before_values: dict[str, Any]
    after_values: dict[str, Any]
    changed_fields: list[str]
    additional_info: Optional[str] = None


@dataclass
class DeleteDetails:
    kind: ClassVar[str] = "delete"
    before_values: dict[str, Any]


@dataclass
class StatusChangeDetails:
    kind: ClassVar[str] = "status_change"
    from_status: str
    to_status: str
    reason: str = ""
    forced: bool = False


@dataclass
class PriorityChangeDetails:
    kind: ClassVar[str] = "priority_change"
    from_priority: str
    to_priority: str


@dataclass
class ReturnProcessDetails:
    kind: ClassVar[str] = "return_process"
    return_quantity: int
    previous_return_quantity: int
    new_total_return_quantity: int
    remaining_quantity: int
    return_notes: str = ""


@dataclass
class BatchOperationDetails:
    kind: ClassVar[str] = "batch_operation"
    operation: str
    affected_items: list[str]
    total_count: int
    failed_items: list[str] = field(default_factory=list)
    change_details: dict[str, Any] = field(default_factory=dict)


AuditDetails = Union[
    CreateDetails,
    UpdateDetails,
    DeleteDetails,
    StatusChangeDetails,
    PriorityChangeDetails,
    ReturnProcessDetails,
    BatchOperationDetails,
]

_DETAIL_TYPES: dict[str, type] = {
    cls.kind: cls
    for cls in (
        CreateDetails,
        UpdateDetails,
        DeleteDetails,
        StatusChangeDetails,
        PriorityChangeDetails,
        ReturnProcessDetails,
        BatchOperationDetails,
    )
}


def details_to_dict(details: AuditDetails) -> dict[str, Any]:
    data = asdict(details)
    data["kind"] = details.kind
    return data


def details_from_dict(data: dict[str, Any]) -> AuditDetails:
    """Etiketli sözlükten detay nesnesini üretir."""
    payload = dict(data)
    kind = payload.pop("kind", None)
    cls = _DETAIL_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"Bilinmeyen audit detay tipi: {kind}")
    return cls(**payload)


@dataclass
class AuditLogEntry:
    operation_type: OperationType
    entity_type: EntityType
    entity_id: str
    entity_description: str
    operator_user_id: str
    operator_user_name: str
    details: AuditDetails
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    batch_id: Optional[str] = None
    related_entity_ids: list[str] = field(default_factory=list)
    device_info: Optional[str] = None

    @property
    def changed_fields(self) -> list[str]:
        if isinstance(self.details, UpdateDetails):
            return list(self.details.changed_fields)
        return []

    def to_item(self) -> dict[str, Any]:
        """DynamoDB'ye yazılacak düz kayıt."""
        item = {
            "entry_id": self.entry_id,
            "operation_type": self.operation_type.value,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "entity_description": self.entity_description,
            "operator_user_id": self.operator_user_id,
            "operator_user_name": self.operator_user_name,
            "timestamp": self.timestamp,
            "operation_details": json.dumps(details_to_dict(self.details), ensure_ascii=False),
            "related_entity_ids": list(self.related_entity_ids),
        }
        if self.batch_id:
            item["batch_id"] = self.batch_id
        if self.device_info:
            item["device_info"] = self.device_info
        return item

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "AuditLogEntry":
        return cls(
            entry_id=item["entry_id"],
            operation_type=OperationType(item["operation_type"]),
            entity_type=EntityType(item["entity_type"]),
            entity_id=item["entity_id"],
            entity_description=item.get("entity_description", ""),
            operator_user_id=item["operator_user_id"],
            operator_user_name=item.get("operator_user_name", ""),
            timestamp=item["timestamp"],
            details=details_from_dict(json.loads(item["operation_details"])),
            batch_id=item.get("batch_id"),
            related_entity_ids=list(item.get("related_entity_ids", [])),
            device_info=item.get("device_info"),
        )

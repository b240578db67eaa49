"""Audit log kaydedici.

Kayıtlar bellekte sırayla tutulur. Tablo veya bucket verilmişse DynamoDB'ye
ve S3'e de yazılır; bu yazımlardaki hatalar loglanır ama kaydı düşürmez.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from stockout.models.audit import (
    AuditDetails,
    AuditLogEntry,
    BatchOperationDetails,
    EntityType,
    OperationType,
    details_to_dict,
)
from stockout.models.out_of_stock import Operator

logger = logging.getLogger(__name__)


class MissingOperatorError(ValueError):
    """İşlemi yapan kullanıcı bilgisi eksik."""
    pass


def require_operator(operator: Optional[Operator]) -> Operator:
    if operator is None or not operator.user_id:
        raise MissingOperatorError("Değişiklik işlemleri için kimliği doğrulanmış kullanıcı gerekli")
    return operator


class AuditLogger:
    """Ekleme-only audit kaydı."""

    def __init__(
        self,
        dynamodb_resource: Optional[Any] = None,
        s3_client: Optional[Any] = None,
        table_name: Optional[str] = None,
        bucket_name: Optional[str] = None,
        device_info: str = "server",
    ):
        self.table = dynamodb_resource.Table(table_name) if dynamodb_resource and table_name else None
        self.s3 = s3_client
        self.bucket_name = bucket_name
        self.device_info = device_info
        self._entries: list[AuditLogEntry] = []

    def log(
        self,
        operation_type: OperationType,
        entity_id: str,
        entity_description: str,
        operator: Operator,
        details: AuditDetails,
        entity_type: EntityType = EntityType.CUSTOMER_OUT_OF_STOCK,
        batch_id: Optional[str] = None,
        related_entity_ids: Optional[list[str]] = None,
    ) -> AuditLogEntry:
        """Bir işlemi audit log'a kaydeder."""
        operator = require_operator(operator)
        entry = AuditLogEntry(
            operation_type=operation_type,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_description=entity_description,
            operator_user_id=operator.user_id,
            operator_user_name=operator.name,
            details=details,
            batch_id=batch_id,
            related_entity_ids=list(related_entity_ids or []),
            device_info=self.device_info,
        )
        self._entries.append(entry)
        logger.info(
            "Audit: %s %s (%s) by %s",
            operation_type.value, entity_id, entity_description, operator.user_id,
        )

        if self.table is not None:
            try:
                self.table.put_item(Item=entry.to_item())
            except (ClientError, BotoCoreError) as e:
                logger.warning("Audit kaydı DynamoDB'ye yazılamadı: %s", e)

        if self.s3 is not None and self.bucket_name:
            try:
                self.log_to_s3(entry)
            except (ClientError, BotoCoreError) as e:
                logger.warning("Audit kaydı S3'e yazılamadı: %s", e)

        return entry

    def log_batch(
        self,
        operation_type: OperationType,
        operator: Operator,
        details: BatchOperationDetails,
        batch_id: Optional[str] = None,
        entity_type: EntityType = EntityType.CUSTOMER_OUT_OF_STOCK,
    ) -> AuditLogEntry:
        """Toplu işlem özet kaydı; batch_id hem entity_id hem grup anahtarıdır."""
        batch_id = batch_id or str(uuid.uuid4())
        return self.log(
            operation_type=operation_type,
            entity_id=batch_id,
            entity_description=f"Toplu işlem: {details.total_count} kayıt",
            operator=operator,
            details=details,
            entity_type=entity_type,
            batch_id=batch_id,
            related_entity_ids=details.affected_items,
        )

    def log_to_s3(self, entry: AuditLogEntry) -> None:
        timestamp = datetime.utcnow().strftime("%Y-%m-%dT%H-%M-%S")
        key = f"audit-logs/{entry.entity_type.value}/{entry.operation_type.value}-{timestamp}-{entry.entry_id[:8]}.json"
        body = entry.to_item()
        body["operation_details"] = details_to_dict(entry.details)
        self.s3.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=json.dumps(body, default=str, ensure_ascii=False),
        )

    # --- Sorgular ---

    def get_entries(
        self,
        entity_id: Optional[str] = None,
        operation_type: Optional[OperationType] = None,
        batch_id: Optional[str] = None,
        operator_user_id: Optional[str] = None,
    ) -> list[AuditLogEntry]:
        """Audit log'u filtreli olarak döndürür."""
        entries = self._entries
        if entity_id:
            entries = [e for e in entries if e.entity_id == entity_id]
        if operation_type:
            entries = [e for e in entries if e.operation_type == operation_type]
        if batch_id:
            entries = [e for e in entries if e.batch_id == batch_id]
        if operator_user_id:
            entries = [e for e in entries if e.operator_user_id == operator_user_id]
        return list(entries)

    def history_for(self, entity_id: str) -> list[AuditLogEntry]:
        """Bir kaydı doğrudan ya da toplu işlemle etkileyen tüm kayıtlar."""
        return [
            e for e in self._entries
            if e.entity_id == entity_id or entity_id in e.related_entity_ids
        ]

    def __len__(self) -> int:
        return len(self._entries)

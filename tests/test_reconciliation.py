"""Reconciliation Service unit testleri."""

import pytest
from botocore.exceptions import EndpointConnectionError
from unittest.mock import MagicMock

from stockout.models.audit import (
    BatchOperationDetails,
    CreateDetails,
    DeleteDetails,
    OperationType,
    ReturnProcessDetails,
    StatusChangeDetails,
    UpdateDetails,
)
from stockout.models.out_of_stock import (
    Customer,
    Operator,
    OutOfStockRequest,
    Priority,
    Product,
    RequestStatus,
)
from stockout.repository import InMemoryOutOfStockRepository, PersistenceError
from stockout.services import (
    AuditLogger,
    CreationSpec,
    DeliveryOperation,
    DeliveryRejectedError,
    InvalidFieldValueError,
    InvalidQuantityError,
    InvalidStatusTransitionError,
    MissingOperatorError,
    ReconciliationService,
    UnknownFieldError,
    ValidationError,
)

OPERATOR = Operator(user_id="U001", name="Ayşe Demir")
CUSTOMER = Customer("C001", "Ahmet Yılmaz", "Kadıköy, İstanbul")
PRODUCT = Product("P001", "Klasik Tişört", "PRD-001")


def _create_service():
    repository = InMemoryOutOfStockRepository()
    audit = AuditLogger()
    return ReconciliationService(repository, audit), repository, audit


def _create_request(service, quantity: int = 50) -> OutOfStockRequest:
    return service.create_request(CUSTOMER, PRODUCT, quantity, OPERATOR)


class TestCreateRequest:

    def test_create_saves_and_audits(self):
        service, repository, audit = _create_service()
        request = _create_request(service)
        assert repository.fetch(request.request_id) is request
        entries = audit.get_entries(entity_id=request.request_id)
        assert len(entries) == 1
        assert entries[0].operation_type == OperationType.CREATE
        assert isinstance(entries[0].details, CreateDetails)
        assert entries[0].operator_user_id == "U001"
        assert request.created_by == "U001"

    def test_non_positive_quantity_raises(self):
        service, repository, audit = _create_service()
        with pytest.raises(InvalidQuantityError):
            service.create_request(CUSTOMER, PRODUCT, 0, OPERATOR)
        assert repository.fetch_all() == []
        assert len(audit) == 0

    def test_non_integer_quantity_raises(self):
        service, repository, _ = _create_service()
        with pytest.raises(InvalidQuantityError):
            service.create_request(CUSTOMER, PRODUCT, 2.5, OPERATOR)
        with pytest.raises(InvalidQuantityError):
            service.create_request(CUSTOMER, PRODUCT, True, OPERATOR)
        assert repository.fetch_all() == []

    def test_create_batch_skips_invalid(self):
        service, repository, audit = _create_service()
        result = service.create_batch(
            [
                CreationSpec(CUSTOMER, PRODUCT, 10),
                CreationSpec(CUSTOMER, PRODUCT, -1),
                CreationSpec(CUSTOMER, PRODUCT, 5, priority=Priority.HIGH),
            ],
            OPERATOR,
        )
        assert len(result.succeeded) == 2
        assert result.failed_ids == ["#1"]
        assert len(repository.fetch_all()) == 2
        assert len(audit.get_entries(operation_type=OperationType.CREATE)) == 2
        assert result.batch_entry.operation_type == OperationType.BATCH_UPDATE


class TestApplyDelivery:
    """Teslim işleme ve audit kaydı."""

    def test_partial_then_full_delivery(self):
        """quantity=50: 20 teslim sonra 30 teslim."""
        service, _, _ = _create_service()
        request = _create_request(service, 50)

        service.apply_delivery(request, 20, None, OPERATOR)
        assert request.remaining_quantity == 30
        assert request.has_partial_return is True
        assert request.is_fully_returned is False
        assert request.status == RequestStatus.PENDING

        service.apply_delivery(request, 30, None, OPERATOR)
        assert request.remaining_quantity == 0
        assert request.is_fully_returned is True
        assert request.needs_return is False
        assert request.status == RequestStatus.COMPLETED
        assert request.actual_completion_date is not None

    def test_full_remaining_delivery_completes(self):
        service, _, _ = _create_service()
        request = _create_request(service, 40)
        service.apply_delivery(request, request.remaining_quantity, "tamamı", OPERATOR)
        assert request.is_fully_returned is True
        assert request.needs_return is False

    @pytest.mark.parametrize("quantity", [0, -3, 51, 2.5, True])
    def test_invalid_quantity_rejected_without_mutation(self, quantity):
        service, repository, audit = _create_service()
        request = _create_request(service, 50)
        saves_before = repository.save_count

        with pytest.raises(DeliveryRejectedError) as exc_info:
            service.apply_delivery(request, quantity, "not", OPERATOR)

        assert exc_info.value.result.is_valid is False
        assert request.delivery_quantity == 0
        assert request.delivery_date is None
        assert request.delivery_notes is None
        assert repository.save_count == saves_before
        assert audit.get_entries(operation_type=OperationType.RETURN_PROCESS) == []

    def test_delivery_emits_one_return_process_entry(self):
        service, _, audit = _create_service()
        request = _create_request(service, 50)
        entry = service.apply_delivery(request, 20, "ilk parti", OPERATOR)

        assert audit.get_entries(operation_type=OperationType.RETURN_PROCESS) == [entry]
        assert isinstance(entry.details, ReturnProcessDetails)
        assert entry.details.return_quantity == 20
        assert entry.details.return_notes == "ilk parti"
        assert entry.details.previous_return_quantity == 0
        assert entry.details.new_total_return_quantity == 20
        assert entry.details.remaining_quantity == 30

    def test_notes_are_appended(self):
        service, _, _ = _create_service()
        request = _create_request(service, 50)
        service.apply_delivery(request, 10, "birinci", OPERATOR)
        service.apply_delivery(request, 10, None, OPERATOR)
        service.apply_delivery(request, 10, "ikinci", OPERATOR)
        assert request.delivery_notes == "birinci\nikinci"

    def test_cancelled_request_rejected(self):
        service, _, _ = _create_service()
        request = _create_request(service, 50)
        service.change_status(request, RequestStatus.CANCELLED, OPERATOR)
        with pytest.raises(DeliveryRejectedError):
            service.apply_delivery(request, 5, None, OPERATOR)

    def test_persistence_failure_restores_request(self):
        repository = MagicMock()
        repository.save.side_effect = PersistenceError("kayıt hatası")
        audit = AuditLogger()
        service = ReconciliationService(repository, audit)
        request = OutOfStockRequest(customer=CUSTOMER, product=PRODUCT, quantity=50)

        with pytest.raises(PersistenceError):
            service.apply_delivery(request, 20, "not", OPERATOR)

        assert request.delivery_quantity == 0
        assert request.delivery_notes is None
        assert len(audit) == 0


class TestApplyBatch:
    """Toplu teslim en iyi çaba ile çalışır."""

    def test_invalid_item_skipped_others_succeed(self):
        service, repository, audit = _create_service()
        first = _create_request(service, 10)
        second = _create_request(service, 20)
        third = _create_request(service, 30)
        saves_before = repository.save_count

        result = service.apply_batch(
            [
                (first, 5, "a"),
                (second, 25, "fazla"),
                DeliveryOperation(third, 30),
            ],
            OPERATOR,
        )

        assert result.succeeded_ids == [first.request_id, third.request_id]
        assert result.failed_ids == [second.request_id]
        assert second.delivery_quantity == 0
        assert first.delivery_quantity == 5
        assert third.is_fully_returned is True
        # tek toplu kayıt
        assert repository.save_count == saves_before + 2

        returns = audit.get_entries(operation_type=OperationType.RETURN_PROCESS)
        assert [e.entity_id for e in returns] == [first.request_id, third.request_id]
        assert audit.get_entries(entity_id=second.request_id, operation_type=OperationType.RETURN_PROCESS) == []

    def test_batch_summary_entry(self):
        service, _, audit = _create_service()
        first = _create_request(service, 10)
        second = _create_request(service, 10)

        result = service.apply_batch([(first, 5, None), (second, 0, None)], OPERATOR)

        summary = result.batch_entry
        assert summary.operation_type == OperationType.BATCH_UPDATE
        assert isinstance(summary.details, BatchOperationDetails)
        assert summary.details.affected_items == [first.request_id]
        assert summary.details.failed_items == [second.request_id]
        assert summary.related_entity_ids == [first.request_id]
        assert all(e.batch_id == summary.batch_id for e in result.item_entries)
        assert len(audit.get_entries(batch_id=summary.batch_id)) == 2

    def test_all_invalid_produces_no_audit(self):
        service, _, audit = _create_service()
        request = _create_request(service, 10)
        entries_before = len(audit)
        result = service.apply_batch([(request, 11, None)], OPERATOR)
        assert result.succeeded == []
        assert result.batch_entry is None
        assert len(audit) == entries_before

    def test_duplicate_request_in_batch_rejected(self):
        service, _, audit = _create_service()
        request = _create_request(service, 50)

        result = service.apply_batch([(request, 20, None), (request, 30, None)], OPERATOR)

        assert result.succeeded_ids == [request.request_id]
        assert result.failed_ids == [request.request_id]
        assert request.delivery_quantity == 20
        entries = audit.get_entries(operation_type=OperationType.RETURN_PROCESS)
        assert len(entries) == 1
        details = entries[0].details
        assert (details.previous_return_quantity, details.new_total_return_quantity, details.remaining_quantity) == (0, 20, 30)
        assert result.batch_entry.details.total_count == 1

    def test_audit_mirror_connection_failure_does_not_stop_batch(self):
        dynamodb = MagicMock()
        dynamodb.Table.return_value.put_item.side_effect = EndpointConnectionError(
            endpoint_url="https://dynamodb.us-west-2.amazonaws.com"
        )
        audit = AuditLogger(dynamodb_resource=dynamodb, table_name="AuditLogs")
        service = ReconciliationService(InMemoryOutOfStockRepository(), audit)
        requests = [_create_request(service, 5) for _ in range(3)]

        result = service.apply_batch([(r, 5, None) for r in requests], OPERATOR)

        assert [r.delivery_quantity for r in requests] == [5, 5, 5]
        assert len(audit.get_entries(operation_type=OperationType.RETURN_PROCESS)) == 3
        assert result.batch_entry is not None


class TestUpdateFields:
    """Değişmeyen alan audit üretmez; değişenler tek kayıtta listelenir."""

    def test_no_changes_no_audit(self):
        service, repository, audit = _create_service()
        request = _create_request(service, 50)
        entries_before = len(audit)
        saves_before = repository.save_count

        entry = service.update_fields(request, {"quantity": 50, "customer": CUSTOMER}, OPERATOR)

        assert entry is None
        assert len(audit) == entries_before
        assert repository.save_count == saves_before

    def test_changed_fields_recorded(self):
        service, _, audit = _create_service()
        request = _create_request(service, 50)

        entry = service.update_fields(
            request,
            {"quantity": 60, "priority": Priority.HIGH, "notes": None, "product": PRODUCT},
            OPERATOR,
        )

        assert audit.get_entries(operation_type=OperationType.UPDATE) == [entry]
        assert isinstance(entry.details, UpdateDetails)
        assert entry.changed_fields == ["quantity", "priority"]
        assert entry.details.before_values == {"quantity": 50, "priority": "medium"}
        assert entry.details.after_values == {"quantity": 60, "priority": "high"}
        assert request.quantity == 60
        assert request.updated_by == "U001"

    def test_customer_change_compared_by_id(self):
        service, _, _ = _create_service()
        request = _create_request(service, 50)
        other = Customer("C002", "Mehmet Kaya", "Beşiktaş")
        entry = service.update_fields(request, {"customer": other}, OPERATOR)
        assert entry.changed_fields == ["customer"]
        assert entry.details.before_values == {"customer": "C001"}
        assert request.customer_id == "C002"

    def test_unknown_field_raises(self):
        service, _, _ = _create_service()
        request = _create_request(service, 50)
        with pytest.raises(UnknownFieldError):
            service.update_fields(request, {"delivery_quantity": 10}, OPERATOR)

    def test_quantity_below_delivered_raises(self):
        service, _, _ = _create_service()
        request = _create_request(service, 50)
        service.apply_delivery(request, 30, None, OPERATOR)
        with pytest.raises(InvalidQuantityError):
            service.update_fields(request, {"quantity": 20}, OPERATOR)
        assert request.quantity == 50

    def test_quantity_lowered_to_delivered_completes(self):
        service, _, audit = _create_service()
        request = _create_request(service, 50)
        service.apply_delivery(request, 20, None, OPERATOR)
        entries_before = len(audit)

        entry = service.update_fields(request, {"quantity": 20}, OPERATOR)

        assert request.status == RequestStatus.COMPLETED
        assert request.actual_completion_date is not None
        assert request.needs_return is False
        assert len(audit) == entries_before + 1
        assert entry.changed_fields == ["quantity", "status"]
        assert entry.details.before_values == {"quantity": 50, "status": "pending"}
        assert entry.details.after_values == {"quantity": 20, "status": "completed"}

    def test_quantity_raise_on_completed_rejected(self):
        service, _, _ = _create_service()
        request = _create_request(service, 50)
        service.apply_delivery(request, 50, None, OPERATOR)

        with pytest.raises(InvalidQuantityError):
            service.update_fields(request, {"quantity": 80}, OPERATOR)

        assert request.quantity == 50
        assert request.status == RequestStatus.COMPLETED
        assert request.remaining_quantity == 0

    def test_relation_value_must_be_model(self):
        service, repository, audit = _create_service()
        request = _create_request(service, 50)
        saves_before = repository.save_count
        entries_before = len(audit)

        with pytest.raises(InvalidFieldValueError):
            service.update_fields(request, {"customer": {"customer_id": "C002", "name": "Mehmet"}}, OPERATOR)

        assert request.customer is CUSTOMER
        assert repository.save_count == saves_before
        assert len(audit) == entries_before

    def test_invalid_priority_raises_field_value_error(self):
        service, _, _ = _create_service()
        request = _create_request(service, 50)
        with pytest.raises(InvalidFieldValueError):
            service.update_fields(request, {"priority": "urgent"}, OPERATOR)

    def test_unexpected_save_error_restores_request(self):
        repository = MagicMock()
        repository.save.side_effect = RuntimeError("beklenmeyen")
        service = ReconciliationService(repository, AuditLogger())
        request = OutOfStockRequest(customer=CUSTOMER, product=PRODUCT, quantity=50)

        with pytest.raises(RuntimeError):
            service.update_fields(request, {"quantity": 60, "notes": "yeni"}, OPERATOR)

        assert request.quantity == 50
        assert request.notes is None


class TestStatusChanges:

    def test_complete_with_remaining_rejected(self):
        service, _, _ = _create_service()
        request = _create_request(service, 50)
        with pytest.raises(InvalidStatusTransitionError):
            service.change_status(request, RequestStatus.COMPLETED, OPERATOR)
        assert request.status == RequestStatus.PENDING

    def test_forced_completion(self):
        service, _, _ = _create_service()
        request = _create_request(service, 50)
        entry = service.change_status(request, RequestStatus.COMPLETED, OPERATOR, force=True, reason="müşteri vazgeçti")
        assert request.status == RequestStatus.COMPLETED
        assert isinstance(entry.details, StatusChangeDetails)
        assert entry.details.from_status == "pending"
        assert entry.details.to_status == "completed"
        assert entry.details.forced is True

    def test_refund(self):
        service, _, _ = _create_service()
        request = _create_request(service, 50)
        entry = service.process_refund(request, "tedarikçiye iade", OPERATOR)
        assert request.status == RequestStatus.REFUNDED
        assert request.refund_reason == "tedarikçiye iade"
        assert request.refund_date is not None
        assert entry.operation_type == OperationType.STATUS_CHANGE

    def test_double_refund_rejected(self):
        service, _, _ = _create_service()
        request = _create_request(service, 50)
        service.process_refund(request, "iade", OPERATOR)
        with pytest.raises(ValidationError):
            service.process_refund(request, "tekrar", OPERATOR)

    def test_batch_update_status(self):
        service, _, audit = _create_service()
        first = _create_request(service, 10)
        second = _create_request(service, 10)
        service.change_status(second, RequestStatus.CANCELLED, OPERATOR)

        result = service.batch_update_status([first, second], RequestStatus.CONFIRMED, OPERATOR)

        assert result.succeeded_ids == [first.request_id]
        assert result.failed_ids == [second.request_id]
        assert first.status == RequestStatus.CONFIRMED
        assert second.status == RequestStatus.CANCELLED
        assert result.batch_entry.details.change_details == {"status": "confirmed"}

    def test_batch_update_priority(self):
        service, _, audit = _create_service()
        first = _create_request(service, 10)
        second = _create_request(service, 10)
        second.priority = Priority.HIGH

        result = service.batch_update_priority([first, second], Priority.HIGH, OPERATOR)

        assert result.succeeded_ids == [first.request_id]
        assert first.priority == Priority.HIGH
        changes = audit.get_entries(operation_type=OperationType.PRIORITY_CHANGE)
        assert len(changes) == 1
        assert changes[0].details.from_priority == "medium"


class TestDelete:

    def test_delete_audits_after_removing(self):
        repository = MagicMock()
        audit = AuditLogger()
        service = ReconciliationService(repository, audit)
        request = OutOfStockRequest(customer=CUSTOMER, product=PRODUCT, quantity=10)

        def _check_no_audit_yet(request_id):
            assert audit.get_entries(entity_id=request_id) == []

        repository.delete.side_effect = _check_no_audit_yet
        entry = service.delete_request(request, OPERATOR)

        repository.delete.assert_called_once_with(request.request_id)
        assert isinstance(entry.details, DeleteDetails)
        assert entry.details.before_values["quantity"] == 10

    def test_failed_delete_leaves_no_entry(self):
        repository = MagicMock()
        repository.delete.side_effect = PersistenceError("silinemedi")
        audit = AuditLogger()
        service = ReconciliationService(repository, audit)
        request = OutOfStockRequest(customer=CUSTOMER, product=PRODUCT, quantity=10)

        with pytest.raises(PersistenceError):
            service.delete_request(request, OPERATOR)

        assert len(audit) == 0

    def test_batch_delete_failure_keeps_summary_for_deleted(self):
        repository = MagicMock()
        repository.delete.side_effect = [None, PersistenceError("silinemedi")]
        audit = AuditLogger()
        service = ReconciliationService(repository, audit)
        first = OutOfStockRequest(customer=CUSTOMER, product=PRODUCT, quantity=10)
        second = OutOfStockRequest(customer=CUSTOMER, product=PRODUCT, quantity=20)

        with pytest.raises(PersistenceError):
            service.batch_delete([first, second], OPERATOR)

        deletes = audit.get_entries(operation_type=OperationType.DELETE)
        assert [e.entity_id for e in deletes] == [first.request_id]
        summaries = audit.get_entries(operation_type=OperationType.BATCH_DELETE)
        assert len(summaries) == 1
        assert summaries[0].details.affected_items == [first.request_id]
        assert summaries[0].details.failed_items == [second.request_id]

    def test_batch_delete(self):
        service, repository, audit = _create_service()
        first = _create_request(service, 10)
        second = _create_request(service, 20)

        result = service.batch_delete([first, second], OPERATOR)

        assert repository.fetch_all() == []
        assert len(audit.get_entries(operation_type=OperationType.DELETE)) == 2
        assert result.batch_entry.operation_type == OperationType.BATCH_DELETE
        assert result.batch_entry.details.total_count == 2


class TestOperatorRequired:
    """Kullanıcı bilgisi olmadan değişiklik yapılamaz."""

    def test_missing_operator(self):
        service, _, _ = _create_service()
        request = _create_request(service, 10)
        with pytest.raises(MissingOperatorError):
            service.apply_delivery(request, 5, None, None)
        assert request.delivery_quantity == 0

    def test_empty_user_id(self):
        service, _, _ = _create_service()
        with pytest.raises(MissingOperatorError):
            service.create_request(CUSTOMER, PRODUCT, 5, Operator(user_id="", name="demo"))

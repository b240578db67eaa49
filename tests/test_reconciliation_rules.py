"""Mutabakat kuralları unit testleri."""

from stockout.models.out_of_stock import (
    Customer,
    OutOfStockRequest,
    Priority,
    RequestStatus,
)
from stockout.services.reconciliation_rules import (
    compute_changed_fields,
    validate_delivery,
    validate_field_update,
    validate_status_change,
)


def _create_request(quantity: int = 50, delivered: int = 0, **kwargs) -> OutOfStockRequest:
    return OutOfStockRequest(
        customer=Customer("C001", "Ahmet Yılmaz", "Kadıköy"),
        quantity=quantity,
        delivery_quantity=delivered,
        **kwargs,
    )


class TestDeliveryValidation:
    """Teslim miktarı (0, kalan] aralığında olmalı."""

    def test_valid_delivery(self):
        result = validate_delivery(_create_request(), 20)
        assert result.is_valid is True

    def test_full_remaining_is_valid_with_warning(self):
        result = validate_delivery(_create_request(quantity=50, delivered=20), 30)
        assert result.is_valid is True
        assert result.warnings

    def test_zero_quantity(self):
        assert validate_delivery(_create_request(), 0).is_valid is False

    def test_negative_quantity(self):
        assert validate_delivery(_create_request(), -5).is_valid is False

    def test_exceeds_remaining(self):
        result = validate_delivery(_create_request(quantity=50, delivered=40), 11)
        assert result.is_valid is False
        assert len(result.errors) == 1

    def test_closed_request(self):
        request = _create_request(status=RequestStatus.CANCELLED)
        assert validate_delivery(request, 5).is_valid is False

    def test_non_integer_quantity_rejected(self):
        assert validate_delivery(_create_request(), 2.5).is_valid is False
        assert validate_delivery(_create_request(), True).is_valid is False

    def test_validation_does_not_mutate(self):
        request = _create_request(quantity=50, delivered=10)
        validate_delivery(request, 100)
        assert request.delivery_quantity == 10


class TestChangedFields:
    """Yalnızca değeri farklı alanlar raporlanmalı."""

    def test_no_changes(self):
        request = _create_request(notes="not")
        assert compute_changed_fields(request, {"quantity": 50, "notes": "not"}) == []

    def test_changed_fields_in_fixed_order(self):
        request = _create_request()
        changed = compute_changed_fields(
            request, {"notes": "yeni", "priority": Priority.HIGH, "quantity": 60}
        )
        assert changed == ["quantity", "priority", "notes"]

    def test_relation_compared_by_id(self):
        request = _create_request()
        same_customer = Customer("C001", "Farklı Ad", "Farklı adres")
        other_customer = Customer("C002", "Mehmet", "Beşiktaş")
        assert compute_changed_fields(request, {"customer": same_customer}) == []
        assert compute_changed_fields(request, {"customer": other_customer}) == ["customer"]

    def test_relation_removed(self):
        request = _create_request()
        assert compute_changed_fields(request, {"customer": None}) == ["customer"]


class TestFieldUpdateValidation:

    def test_unknown_field(self):
        result = validate_field_update(_create_request(), {"status": RequestStatus.COMPLETED})
        assert result.is_valid is False

    def test_quantity_below_delivered(self):
        result = validate_field_update(_create_request(quantity=50, delivered=30), {"quantity": 20})
        assert result.is_valid is False

    def test_quantity_equal_to_delivered_is_valid(self):
        result = validate_field_update(_create_request(quantity=50, delivered=30), {"quantity": 30})
        assert result.is_valid is True

    def test_invalid_priority_type(self):
        result = validate_field_update(_create_request(), {"priority": "urgent"})
        assert result.is_valid is False

    def test_invalid_priority_marks_field(self):
        result = validate_field_update(_create_request(), {"priority": "urgent"})
        assert result.invalid_fields == ["priority"]

    def test_non_integer_quantity(self):
        assert validate_field_update(_create_request(), {"quantity": 2.5}).is_valid is False
        assert validate_field_update(_create_request(), {"quantity": False}).is_valid is False

    def test_quantity_change_on_terminal_request(self):
        request = _create_request(quantity=50, delivered=50, status=RequestStatus.COMPLETED)
        result = validate_field_update(request, {"quantity": 80})
        assert result.is_valid is False
        assert result.invalid_fields == ["quantity"]
        # değişmeyen miktar sorun değil
        assert validate_field_update(request, {"quantity": 50, "notes": "x"}).is_valid is True

    def test_relation_must_be_model_instance(self):
        request = _create_request()
        result = validate_field_update(request, {"customer": {"customer_id": "C002", "name": "Mehmet"}})
        assert result.is_valid is False
        assert result.invalid_fields == ["customer"]
        assert validate_field_update(request, {"product": "P001"}).is_valid is False
        assert validate_field_update(request, {"customer": None}).is_valid is True


class TestStatusTransitions:
    """Kalan miktar varken tamamlanma yalnızca zorla mümkün."""

    def test_complete_with_remaining_rejected(self):
        result = validate_status_change(_create_request(), RequestStatus.COMPLETED)
        assert result.is_valid is False

    def test_complete_with_remaining_forced(self):
        result = validate_status_change(_create_request(), RequestStatus.COMPLETED, force=True)
        assert result.is_valid is True
        assert result.warnings

    def test_complete_when_fully_delivered(self):
        request = _create_request(quantity=10, delivered=10)
        assert validate_status_change(request, RequestStatus.COMPLETED).is_valid is True

    def test_cannot_leave_terminal_status(self):
        request = _create_request(status=RequestStatus.CANCELLED)
        assert validate_status_change(request, RequestStatus.PENDING).is_valid is False

    def test_same_status_rejected(self):
        assert validate_status_change(_create_request(), RequestStatus.PENDING).is_valid is False

    def test_pending_to_confirmed(self):
        assert validate_status_change(_create_request(), RequestStatus.CONFIRMED).is_valid is True

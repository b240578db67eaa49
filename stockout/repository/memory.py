from __future__ import annotations

from typing import Any, Optional

from stockout.repository.base import CustomerRepository, OutOfStockRepository, ProductRepository


class _InMemoryStore:
    """Test ve yerel kullanım için bellek içi depo. Ekleme sırasını korur."""

    key_attr = ""

    def __init__(self) -> None:
        self._records: dict[str, Any] = {}
        self.save_count = 0

    def save(self, record: Any) -> None:
        self._records[getattr(record, self.key_attr)] = record
        self.save_count += 1

    def fetch(self, record_id: str) -> Optional[Any]:
        return self._records.get(record_id)

    def fetch_all(self) -> list[Any]:
        return list(self._records.values())

    def delete(self, record_id: str) -> None:
        self._records.pop(record_id, None)


class InMemoryOutOfStockRepository(_InMemoryStore, OutOfStockRepository):
    key_attr = "request_id"


class InMemoryCustomerRepository(_InMemoryStore, CustomerRepository):
    key_attr = "customer_id"


class InMemoryProductRepository(_InMemoryStore, ProductRepository):
    key_attr = "product_id"

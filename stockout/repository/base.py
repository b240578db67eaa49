"""Kalıcılık soyutlaması: talepler, müşteriler ve ürünler."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, Iterable, Optional, TypeVar

from stockout.models.out_of_stock import Customer, OutOfStockRequest, Product

T = TypeVar("T")


class PersistenceError(Exception):
    """Kalıcılık katmanı hatası. Çağıran tarafa iletilir, yutulmaz."""
    pass


class RecordRepository(ABC, Generic[T]):

    @abstractmethod
    def save(self, record: T) -> None:
        ...

    def save_many(self, records: Iterable[T]) -> None:
        for record in records:
            self.save(record)

    @abstractmethod
    def fetch(self, record_id: str) -> Optional[T]:
        """Kaydı döndürür; yoksa None."""
        ...

    @abstractmethod
    def fetch_all(self) -> list[T]:
        ...

    @abstractmethod
    def delete(self, record_id: str) -> None:
        ...


class OutOfStockRepository(RecordRepository[OutOfStockRequest]):
    pass


class CustomerRepository(RecordRepository[Customer]):
    pass


class ProductRepository(RecordRepository[Product]):
    pass

"""Talep listesi filtreleme, gruplama ve istatistikleri.

Tüm fonksiyonlar saf ve sıra koruyucudur; boş giriş boş çıkış verir.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from stockout.models.out_of_stock import (
    UNKNOWN_ADDRESS,
    UNKNOWN_CUSTOMER,
    Customer,
    OutOfStockRequest,
    Priority,
    RequestStatus,
)


class SortOrder(str, Enum):
    NEWEST_FIRST = "newest_first"
    OLDEST_FIRST = "oldest_first"
    QUANTITY_DESC = "quantity_desc"
    REMAINING_DESC = "remaining_desc"


@dataclass
class OutOfStockFilterCriteria:
    customer_id: Optional[str] = None
    product_id: Optional[str] = None
    address: Optional[str] = None
    status: Optional[RequestStatus] = None
    priority: Optional[Priority] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    search_text: str = ""
    has_partial_return: Optional[bool] = None
    needs_return: Optional[bool] = None


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.casefold()


def matches_search(request: OutOfStockRequest, text: str) -> bool:
    needle = text.strip().casefold()
    if not needle:
        return True
    customer = request.customer
    product = request.product
    return (
        _contains(customer.name if customer else None, needle)
        or _contains(customer.address if customer else None, needle)
        or _contains(product.name if product else None, needle)
        or _contains(request.notes, needle)
    )


def _in_date_range(request: OutOfStockRequest, date_from: Optional[str], date_to: Optional[str]) -> bool:
    # ISO 8601 dizeleri sözlük sırasıyla karşılaştırılabilir
    if date_from and request.request_date < date_from:
        return False
    if date_to and request.request_date > date_to:
        return False
    return True


def matches(request: OutOfStockRequest, criteria: OutOfStockFilterCriteria) -> bool:
    if criteria.customer_id is not None and request.customer_id != criteria.customer_id:
        return False
    if criteria.product_id is not None and request.product_id != criteria.product_id:
        return False
    if criteria.address and not _contains(
        request.customer.address if request.customer else None, criteria.address.casefold()
    ):
        return False
    if criteria.status is not None and request.status != criteria.status:
        return False
    if criteria.priority is not None and request.priority != criteria.priority:
        return False
    if not _in_date_range(request, criteria.date_from, criteria.date_to):
        return False
    if criteria.has_partial_return is not None and request.has_partial_return != criteria.has_partial_return:
        return False
    if criteria.needs_return is not None and request.needs_return != criteria.needs_return:
        return False
    return matches_search(request, criteria.search_text)


def filter_requests(
    requests: Iterable[OutOfStockRequest],
    criteria: Optional[OutOfStockFilterCriteria] = None,
) -> list[OutOfStockRequest]:
    if criteria is None:
        return list(requests)
    return [r for r in requests if matches(r, criteria)]


def sort_requests(requests: Iterable[OutOfStockRequest], order: SortOrder = SortOrder.NEWEST_FIRST) -> list[OutOfStockRequest]:
    items = list(requests)
    if order == SortOrder.NEWEST_FIRST:
        return sorted(items, key=lambda r: r.request_date, reverse=True)
    if order == SortOrder.OLDEST_FIRST:
        return sorted(items, key=lambda r: r.request_date)
    if order == SortOrder.QUANTITY_DESC:
        return sorted(items, key=lambda r: r.quantity, reverse=True)
    return sorted(items, key=lambda r: r.remaining_quantity, reverse=True)


def paginate(requests: list[OutOfStockRequest], page: int = 0, page_size: int = 50) -> list[OutOfStockRequest]:
    if page < 0 or page_size <= 0:
        raise ValueError(f"Geçersiz sayfa parametresi: page={page}, page_size={page_size}")
    start = page * page_size
    return requests[start:start + page_size]


# --- Müşteri bazında gruplama ---

@dataclass
class CustomerReturnGroup:
    customer: Optional[Customer]
    items: list[OutOfStockRequest] = field(default_factory=list)

    @property
    def customer_id(self) -> Optional[str]:
        return self.customer.customer_id if self.customer else None

    @property
    def customer_name(self) -> str:
        return self.customer.name if self.customer else UNKNOWN_CUSTOMER

    @property
    def customer_address(self) -> str:
        return self.customer.address if self.customer else UNKNOWN_ADDRESS

    @property
    def total_quantity(self) -> int:
        return sum(r.quantity for r in self.items)

    @property
    def returnable_quantity(self) -> int:
        return sum(r.remaining_quantity for r in self.items)

    @property
    def returned_quantity(self) -> int:
        return sum(r.delivery_quantity for r in self.items)


def group_by_customer(requests: Iterable[OutOfStockRequest]) -> list[CustomerReturnGroup]:
    """Her müşteri için bir grup üretir; gruplar ilk görülme sırasındadır.

    Müşterisi olmayan talepler ``customer_id=None`` olan tek bir grupta toplanır.
    """
    groups: dict[Optional[str], CustomerReturnGroup] = {}
    for request in requests:
        key = request.customer_id
        if key not in groups:
            groups[key] = CustomerReturnGroup(customer=request.customer)
        groups[key].items.append(request)
    return list(groups.values())


def search_groups(groups: Iterable[CustomerReturnGroup], text: str) -> list[CustomerReturnGroup]:
    needle = text.strip().casefold()
    if not needle:
        return list(groups)
    return [
        g for g in groups
        if g.customer and (_contains(g.customer.name, needle) or _contains(g.customer.address, needle))
    ]


# --- İstatistikler ---

@dataclass
class OutOfStockStatistics:
    total_items: int = 0
    pending_count: int = 0
    partially_returned_count: int = 0
    fully_returned_count: int = 0
    total_quantity: int = 0
    total_returned_quantity: int = 0
    average_processing_seconds: float = 0.0


def _seconds_between(start: str, end: str) -> float:
    return (datetime.fromisoformat(end) - datetime.fromisoformat(start)).total_seconds()


def compute_statistics(requests: Iterable[OutOfStockRequest]) -> OutOfStockStatistics:
    stats = OutOfStockStatistics()
    processing_total = 0.0
    completed = 0

    for request in requests:
        stats.total_items += 1
        if request.status == RequestStatus.PENDING:
            stats.pending_count += 1
        elif request.status == RequestStatus.COMPLETED:
            completed += 1
            processing_total += _seconds_between(
                request.request_date, request.actual_completion_date or request.updated_at
            )
        if request.has_partial_return:
            stats.partially_returned_count += 1
        if request.is_fully_returned:
            stats.fully_returned_count += 1
        stats.total_quantity += request.quantity
        stats.total_returned_quantity += request.delivery_quantity

    if completed:
        stats.average_processing_seconds = processing_total / completed
    return stats


def status_counts(requests: Iterable[OutOfStockRequest]) -> dict[RequestStatus, int]:
    counts = {status: 0 for status in RequestStatus}
    for request in requests:
        counts[request.status] += 1
    return counts

"""DynamoDB tabanlı depolar.

Tablolar:
  OutOfStockRequests (PK: request_id, GSI: CustomerIndex, StatusTimeIndex)
  Customers (PK: customer_id)
  Products (PK: product_id, bedenler kayıt içinde liste)
Talep kaydında müşteri ve ürün bilgisi ayrıca gömülü (denormalize) yazılır.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, Optional

import boto3
from botocore.exceptions import ClientError

from stockout.config import Settings, get_settings
from stockout.models.out_of_stock import (
    Customer,
    OutOfStockRequest,
    Priority,
    Product,
    ProductSize,
    RequestStatus,
)
from stockout.repository.base import (
    CustomerRepository,
    OutOfStockRepository,
    PersistenceError,
    ProductRepository,
)

logger = logging.getLogger(__name__)

_SCALAR_FIELDS = (
    "request_id",
    "quantity",
    "created_by",
    "notes",
    "request_date",
    "created_at",
    "updated_at",
    "updated_by",
    "delivery_quantity",
    "delivery_date",
    "delivery_notes",
    "actual_completion_date",
    "refund_date",
    "refund_reason",
)


def _from_dynamo(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return int(obj) if obj == int(obj) else float(obj)
    if isinstance(obj, dict):
        return {k: _from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_from_dynamo(i) for i in obj]
    return obj


def _drop_none(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


def size_to_item(size: ProductSize) -> dict[str, Any]:
    return {"size_id": size.size_id, "size": size.size, "product_id": size.product_id}


def customer_to_item(customer: Customer) -> dict[str, Any]:
    return _drop_none({
        "customer_id": customer.customer_id,
        "name": customer.name,
        "address": customer.address,
        "phone": customer.phone,
        "created_at": customer.created_at,
    })


def item_to_customer(item: dict[str, Any]) -> Customer:
    return Customer(**_from_dynamo(item))


def product_to_item(product: Product) -> dict[str, Any]:
    return _drop_none({
        "product_id": product.product_id,
        "name": product.name,
        "sku": product.sku,
        "sizes": [size_to_item(s) for s in product.sizes],
        "created_at": product.created_at,
    })


def item_to_product(item: dict[str, Any]) -> Product:
    data = _from_dynamo(item)
    sizes = [ProductSize(**s) for s in data.pop("sizes", [])]
    return Product(sizes=sizes, **data)


def request_to_item(request: OutOfStockRequest) -> dict[str, Any]:
    item = {name: getattr(request, name) for name in _SCALAR_FIELDS}
    item["status"] = request.status.value
    item["priority"] = request.priority.value
    if request.customer:
        item["customer_id"] = request.customer.customer_id
        item["customer"] = customer_to_item(request.customer)
    if request.product:
        item["product"] = product_to_item(request.product)
    if request.product_size:
        item["product_size"] = size_to_item(request.product_size)
    return _drop_none(item)


def item_to_request(item: dict[str, Any]) -> OutOfStockRequest:
    data = _from_dynamo(item)
    customer = item_to_customer(data["customer"]) if "customer" in data else None
    product = item_to_product(data["product"]) if "product" in data else None
    product_size = ProductSize(**data["product_size"]) if "product_size" in data else None
    scalars = {name: data[name] for name in _SCALAR_FIELDS if name in data}
    return OutOfStockRequest(
        customer=customer,
        product=product,
        product_size=product_size,
        status=RequestStatus(data.get("status", RequestStatus.PENDING.value)),
        priority=Priority(data.get("priority", Priority.MEDIUM.value)),
        **scalars,
    )


class _DynamoDBTable:
    """Tek anahtarlı tablo üzerinde kayıt/okuma/silme. Alt sınıflar anahtar
    adını, dönüşüm fonksiyonlarını ve varsayılan tablo adını verir."""

    key_name = ""
    label = "Kayıt"

    def __init__(
        self,
        dynamodb_resource: Optional[Any] = None,
        table_name: Optional[str] = None,
        region_name: Optional[str] = None,
    ):
        settings = get_settings()
        # boto3 kaynağı - dependency injection destekli
        self.dynamodb = dynamodb_resource or boto3.resource(
            "dynamodb",
            region_name=region_name or settings.aws_region,
            config=settings.boto_config,
        )
        self.table_name = table_name or self._default_table_name(settings)
        self.table = self.dynamodb.Table(self.table_name)

    def _default_table_name(self, settings: Settings) -> str:
        raise NotImplementedError

    def _to_item(self, record: Any) -> dict[str, Any]:
        raise NotImplementedError

    def _from_item(self, item: dict[str, Any]) -> Any:
        raise NotImplementedError

    def save(self, record: Any) -> None:
        record_id = getattr(record, self.key_name)
        try:
            self.table.put_item(Item=self._to_item(record))
        except ClientError as e:
            logger.error("%s kaydedilemedi [%s]: %s", self.label, record_id, e)
            raise PersistenceError(f"{self.label} kaydedilemedi: {record_id}") from e

    def save_many(self, records: Iterable[Any]) -> None:
        try:
            with self.table.batch_writer() as batch:
                for record in records:
                    batch.put_item(Item=self._to_item(record))
        except ClientError as e:
            logger.error("Toplu kayıt hatası (%s): %s", self.table_name, e)
            raise PersistenceError("Toplu kayıt başarısız") from e

    def fetch(self, record_id: str) -> Optional[Any]:
        try:
            resp = self.table.get_item(Key={self.key_name: record_id})
        except ClientError as e:
            logger.error("%s okunamadı [%s]: %s", self.label, record_id, e)
            raise PersistenceError(f"{self.label} okunamadı: {record_id}") from e
        if "Item" not in resp:
            return None
        return self._from_item(resp["Item"])

    def fetch_all(self) -> list[Any]:
        items: list[dict] = []
        kwargs: dict[str, Any] = {}
        try:
            while True:
                resp = self.table.scan(**kwargs)
                items.extend(resp.get("Items", []))
                if "LastEvaluatedKey" not in resp:
                    break
                kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except ClientError as e:
            logger.error("%s listesi okunamadı: %s", self.label, e)
            raise PersistenceError(f"{self.label} listesi okunamadı") from e
        return [self._from_item(item) for item in items]

    def delete(self, record_id: str) -> None:
        try:
            self.table.delete_item(Key={self.key_name: record_id})
        except ClientError as e:
            logger.error("%s silinemedi [%s]: %s", self.label, record_id, e)
            raise PersistenceError(f"{self.label} silinemedi: {record_id}") from e


class DynamoDBOutOfStockRepository(_DynamoDBTable, OutOfStockRepository):
    """OutOfStockRequests tablosu."""

    key_name = "request_id"
    label = "Talep"

    def _default_table_name(self, settings: Settings) -> str:
        return settings.requests_table

    def _to_item(self, record: OutOfStockRequest) -> dict[str, Any]:
        return request_to_item(record)

    def _from_item(self, item: dict[str, Any]) -> OutOfStockRequest:
        return item_to_request(item)


class DynamoDBCustomerRepository(_DynamoDBTable, CustomerRepository):
    key_name = "customer_id"
    label = "Müşteri"

    def _default_table_name(self, settings: Settings) -> str:
        return settings.customers_table

    def _to_item(self, record: Customer) -> dict[str, Any]:
        return customer_to_item(record)

    def _from_item(self, item: dict[str, Any]) -> Customer:
        return item_to_customer(item)


class DynamoDBProductRepository(_DynamoDBTable, ProductRepository):
    key_name = "product_id"
    label = "Ürün"

    def _default_table_name(self, settings: Settings) -> str:
        return settings.products_table

    def _to_item(self, record: Product) -> dict[str, Any]:
        return product_to_item(record)

    def _from_item(self, item: dict[str, Any]) -> Product:
        return item_to_product(item)

from stockout.repository.base import (
    CustomerRepository,
    OutOfStockRepository,
    PersistenceError,
    ProductRepository,
)
from stockout.repository.dynamodb import (
    DynamoDBCustomerRepository,
    DynamoDBOutOfStockRepository,
    DynamoDBProductRepository,
)
from stockout.repository.memory import (
    InMemoryCustomerRepository,
    InMemoryOutOfStockRepository,
    InMemoryProductRepository,
)

__all__ = [
    "CustomerRepository",
    "DynamoDBCustomerRepository",
    "DynamoDBOutOfStockRepository",
    "DynamoDBProductRepository",
    "InMemoryCustomerRepository",
    "InMemoryOutOfStockRepository",
    "InMemoryProductRepository",
    "OutOfStockRepository",
    "PersistenceError",
    "ProductRepository",
]

"""
Stockout Operations MCP Server

Provides tools for out-of-stock requests: delivery processing (single and batch),
field/status/priority updates, customer grouping, statistics, audit history and CSV export.
Customer and product records (create/update/delete, CSV import) are managed here as well;
requests refer to them by id.

Tables used: OutOfStockRequests (PK: request_id), Customers (PK: customer_id),
Products (PK: product_id), AuditLogs (PK: entry_id, GSI: EntityTimeIndex)
"""

import json
import logging
import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import boto3
from decimal import Decimal
from typing import Dict, List, Optional
from boto3.dynamodb.conditions import Key
from mcp.server import Server
from mcp.types import Tool, TextContent

from stockout.config import get_settings
from stockout.models.audit import AuditLogEntry
from stockout.models.out_of_stock import Operator, Priority, RequestStatus
from stockout.repository import (
    DynamoDBCustomerRepository,
    DynamoDBOutOfStockRepository,
    DynamoDBProductRepository,
    PersistenceError,
)
from stockout.services import (
    AuditLogger,
    CatalogService,
    CreationSpec,
    MissingOperatorError,
    ReconciliationService,
    ValidationError,
)
from stockout.services.export import (
    export_filename,
    parse_customers_csv,
    parse_products_csv,
    return_orders_csv,
    upload_export,
)
from stockout.services.filtering import (
    OutOfStockFilterCriteria,
    SortOrder,
    compute_statistics,
    filter_requests,
    group_by_customer,
    paginate,
    search_groups,
    sort_requests,
)

app = Server("stockout-ops")

settings = get_settings()
logging.basicConfig(level=settings.log_level)
dynamodb = boto3.resource("dynamodb", region_name=settings.aws_region, config=settings.boto_config)
s3 = boto3.client("s3", region_name=settings.aws_region, config=settings.boto_config)

repository = DynamoDBOutOfStockRepository(dynamodb_resource=dynamodb, table_name=settings.requests_table)
customer_repo = DynamoDBCustomerRepository(dynamodb_resource=dynamodb, table_name=settings.customers_table)
product_repo = DynamoDBProductRepository(dynamodb_resource=dynamodb, table_name=settings.products_table)
audit_logger = AuditLogger(
    dynamodb_resource=dynamodb,
    s3_client=s3 if settings.export_bucket else None,
    table_name=settings.audit_table,
    bucket_name=settings.export_bucket,
    device_info="mcp_stockout_ops",
)
service = ReconciliationService(repository, audit_logger)
catalog = CatalogService(customer_repo, product_repo, audit_logger)


def _to_json(obj):
    if isinstance(obj, Decimal):
        return int(obj) if obj == int(obj) else float(obj)
    if isinstance(obj, dict):
        return {k: _to_json(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_to_json(i) for i in obj]
    return obj

def _result(data):
    return [TextContent(type="text", text=json.dumps(_to_json(data), indent=2, ensure_ascii=False))]


OPERATOR_PROPS = {"operator_id": {"type": "string"}, "operator_name": {"type": "string"}}
FILTER_PROPS = {
    "customer_id": {"type": "string"}, "product_id": {"type": "string"}, "address": {"type": "string"},
    "status": {"type": "string", "enum": [s.value for s in RequestStatus]},
    "priority": {"type": "string", "enum": [p.value for p in Priority]},
    "date_from": {"type": "string"}, "date_to": {"type": "string"}, "search_text": {"type": "string"},
    "has_partial_return": {"type": "boolean"}, "needs_return": {"type": "boolean"},
}
RELATION_PROPS = {"customer_id": {"type": "string"}, "product_id": {"type": "string"}, "size_id": {"type": "string"}}
CUSTOMER_PROPS = {"name": {"type": "string"}, "address": {"type": "string"}, "phone": {"type": "string"}}
PRODUCT_PROPS = {
    "name": {"type": "string"}, "sku": {"type": "string"},
    "sizes": {"type": "array", "items": {"type": "string"}},
}


@app.list_tools()
async def list_tools() -> List[Tool]:
    return [
        Tool(name="list_requests", description="List out-of-stock requests with filters, sorting and paging",
             inputSchema={"type": "object", "properties": {
                 **FILTER_PROPS,
                 "sort_order": {"type": "string", "enum": [o.value for o in SortOrder], "default": "newest_first"},
                 "page": {"type": "integer", "default": 0}, "page_size": {"type": "integer", "default": 50}
             }}),
        Tool(name="get_request", description="Get a single out-of-stock request",
             inputSchema={"type": "object", "properties": {"request_id": {"type": "string"}}, "required": ["request_id"]}),
        Tool(name="create_request", description="Create an out-of-stock request for a customer",
             inputSchema={"type": "object", "properties": {
                 **RELATION_PROPS, "quantity": {"type": "integer", "minimum": 1},
                 "priority": {"type": "string", "enum": [p.value for p in Priority]},
                 "notes": {"type": "string"}, **OPERATOR_PROPS
             }, "required": ["quantity", "operator_id", "operator_name"]}),
        Tool(name="batch_create_requests", description="Create many out-of-stock requests (best effort)",
             inputSchema={"type": "object", "properties": {
                 "items": {"type": "array", "items": {"type": "object", "properties": {
                     **RELATION_PROPS, "quantity": {"type": "integer"},
                     "priority": {"type": "string"}, "notes": {"type": "string"}
                 }}}, **OPERATOR_PROPS
             }, "required": ["items", "operator_id", "operator_name"]}),
        Tool(name="process_delivery", description="Record a (partial) delivery for a request",
             inputSchema={"type": "object", "properties": {
                 "request_id": {"type": "string"}, "quantity": {"type": "integer", "minimum": 1},
                 "notes": {"type": "string"}, **OPERATOR_PROPS
             }, "required": ["request_id", "quantity", "operator_id", "operator_name"]}),
        Tool(name="batch_process_delivery", description="Record deliveries for many requests (best effort)",
             inputSchema={"type": "object", "properties": {
                 "items": {"type": "array", "items": {"type": "object", "properties": {
                     "request_id": {"type": "string"}, "quantity": {"type": "integer"}, "notes": {"type": "string"}
                 }, "required": ["request_id", "quantity"]}}, **OPERATOR_PROPS
             }, "required": ["items", "operator_id", "operator_name"]}),
        Tool(name="update_request", description="Update customer, product, size, quantity, priority or notes of a request",
             inputSchema={"type": "object", "properties": {
                 "request_id": {"type": "string"},
                 "fields": {"type": "object", "properties": {
                     **RELATION_PROPS, "quantity": {"type": "integer", "minimum": 1},
                     "priority": {"type": "string", "enum": [p.value for p in Priority]}, "notes": {"type": "string"}
                 }, "additionalProperties": False}, **OPERATOR_PROPS
             }, "required": ["request_id", "fields", "operator_id", "operator_name"]}),
        Tool(name="change_status", description="Change the status of a request",
             inputSchema={"type": "object", "properties": {
                 "request_id": {"type": "string"},
                 "status": {"type": "string", "enum": [s.value for s in RequestStatus]},
                 "force": {"type": "boolean", "default": False}, "reason": {"type": "string"}, **OPERATOR_PROPS
             }, "required": ["request_id", "status", "operator_id", "operator_name"]}),
        Tool(name="refund_request", description="Close a request as refunded/returned to supplier",
             inputSchema={"type": "object", "properties": {
                 "request_id": {"type": "string"}, "reason": {"type": "string"}, **OPERATOR_PROPS
             }, "required": ["request_id", "reason", "operator_id", "operator_name"]}),
        Tool(name="delete_request", description="Delete a request (audited)",
             inputSchema={"type": "object", "properties": {"request_id": {"type": "string"}, **OPERATOR_PROPS},
                          "required": ["request_id", "operator_id", "operator_name"]}),
        Tool(name="customer_groups", description="Group requests by customer with quantity totals",
             inputSchema={"type": "object", "properties": {**FILTER_PROPS, "group_search": {"type": "string"}}}),
        Tool(name="get_statistics", description="Aggregate statistics over filtered requests",
             inputSchema={"type": "object", "properties": FILTER_PROPS}),
        Tool(name="get_audit_history", description="Audit history of a request using EntityTimeIndex GSI",
             inputSchema={"type": "object", "properties": {
                 "request_id": {"type": "string"}, "limit": {"type": "integer", "default": 50}
             }, "required": ["request_id"]}),
        Tool(name="export_return_orders", description="Export filtered requests as CSV to S3 and return a download link",
             inputSchema={"type": "object", "properties": FILTER_PROPS}),
        Tool(name="list_customers", description="List customers",
             inputSchema={"type": "object", "properties": {"search_text": {"type": "string"}}}),
        Tool(name="create_customer", description="Create a customer (audited)",
             inputSchema={"type": "object", "properties": {**CUSTOMER_PROPS, **OPERATOR_PROPS},
                          "required": ["name", "address", "operator_id", "operator_name"]}),
        Tool(name="update_customer", description="Update name, address or phone of a customer",
             inputSchema={"type": "object", "properties": {
                 "customer_id": {"type": "string"},
                 "fields": {"type": "object", "properties": CUSTOMER_PROPS, "additionalProperties": False},
                 **OPERATOR_PROPS
             }, "required": ["customer_id", "fields", "operator_id", "operator_name"]}),
        Tool(name="delete_customer", description="Delete a customer (audited)",
             inputSchema={"type": "object", "properties": {"customer_id": {"type": "string"}, **OPERATOR_PROPS},
                          "required": ["customer_id", "operator_id", "operator_name"]}),
        Tool(name="list_products", description="List products with their sizes",
             inputSchema={"type": "object", "properties": {"search_text": {"type": "string"}}}),
        Tool(name="create_product", description="Create a product with sizes (audited)",
             inputSchema={"type": "object", "properties": {**PRODUCT_PROPS, **OPERATOR_PROPS},
                          "required": ["name", "operator_id", "operator_name"]}),
        Tool(name="update_product", description="Update name, SKU or size list of a product",
             inputSchema={"type": "object", "properties": {
                 "product_id": {"type": "string"},
                 "fields": {"type": "object", "properties": PRODUCT_PROPS, "additionalProperties": False},
                 **OPERATOR_PROPS
             }, "required": ["product_id", "fields", "operator_id", "operator_name"]}),
        Tool(name="delete_product", description="Delete a product (audited)",
             inputSchema={"type": "object", "properties": {"product_id": {"type": "string"}, **OPERATOR_PROPS},
                          "required": ["product_id", "operator_id", "operator_name"]}),
        Tool(name="import_customers_csv", description="Import customers from CSV text (Ad, Adres, Telefon)",
             inputSchema={"type": "object", "properties": {"csv": {"type": "string"}, **OPERATOR_PROPS},
                          "required": ["csv", "operator_id", "operator_name"]}),
        Tool(name="import_products_csv", description="Import products from CSV text (Ürün Adı, SKU, Bedenler)",
             inputSchema={"type": "object", "properties": {"csv": {"type": "string"}, **OPERATOR_PROPS},
                          "required": ["csv", "operator_id", "operator_name"]}),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> List[TextContent]:
    handlers = {
        "list_requests": lambda a: list_requests(a),
        "get_request": lambda a: get_request(a["request_id"]),
        "create_request": lambda a: create_request(a),
        "batch_create_requests": lambda a: batch_create_requests(a["items"], _operator(a)),
        "process_delivery": lambda a: process_delivery(a["request_id"], a["quantity"], a.get("notes"), _operator(a)),
        "batch_process_delivery": lambda a: batch_process_delivery(a["items"], _operator(a)),
        "update_request": lambda a: update_request(a["request_id"], a["fields"], _operator(a)),
        "change_status": lambda a: change_status(a["request_id"], a["status"], a.get("force", False), a.get("reason", ""), _operator(a)),
        "refund_request": lambda a: refund_request(a["request_id"], a["reason"], _operator(a)),
        "delete_request": lambda a: delete_request(a["request_id"], _operator(a)),
        "customer_groups": lambda a: customer_groups(a),
        "get_statistics": lambda a: get_statistics(a),
        "get_audit_history": lambda a: get_audit_history(a["request_id"], a.get("limit", 50)),
        "export_return_orders": lambda a: export_return_orders(a),
        "list_customers": lambda a: list_customers(a.get("search_text", "")),
        "create_customer": lambda a: create_customer(a),
        "update_customer": lambda a: update_customer(a["customer_id"], a["fields"], _operator(a)),
        "delete_customer": lambda a: delete_customer(a["customer_id"], _operator(a)),
        "list_products": lambda a: list_products(a.get("search_text", "")),
        "create_product": lambda a: create_product(a),
        "update_product": lambda a: update_product(a["product_id"], a["fields"], _operator(a)),
        "delete_product": lambda a: delete_product(a["product_id"], _operator(a)),
        "import_customers_csv": lambda a: import_customers_csv(a["csv"], _operator(a)),
        "import_products_csv": lambda a: import_products_csv(a["csv"], _operator(a)),
    }
    handler = handlers.get(name)
    if not handler:
        raise ValueError(f"Unknown tool: {name}")
    try:
        return _result(handler(arguments))
    except (ValidationError, MissingOperatorError) as e:
        return _result({"success": False, "error": str(e)})
    except PersistenceError as e:
        return _result({"success": False, "error": str(e), "retryable": True})


# --- Implementation ---

def _operator(args: Dict) -> Optional[Operator]:
    if not args.get("operator_id"):
        return None
    return Operator(user_id=args["operator_id"], name=args.get("operator_name", ""))


def _criteria(args: Dict) -> OutOfStockFilterCriteria:
    return OutOfStockFilterCriteria(
        customer_id=args.get("customer_id"),
        product_id=args.get("product_id"),
        address=args.get("address"),
        status=RequestStatus(args["status"]) if args.get("status") else None,
        priority=Priority(args["priority"]) if args.get("priority") else None,
        date_from=args.get("date_from"),
        date_to=args.get("date_to"),
        search_text=args.get("search_text", ""),
        has_partial_return=args.get("has_partial_return"),
        needs_return=args.get("needs_return"),
    )


def _summary(request) -> Dict:
    return {
        "request_id": request.request_id,
        "customer": request.customer_display_name,
        "customer_id": request.customer_id,
        "product": request.product_display_name,
        "quantity": request.quantity,
        "delivery_quantity": request.delivery_quantity,
        "remaining_quantity": request.remaining_quantity,
        "status": request.status.value,
        "priority": request.priority.value,
        "needs_return": request.needs_return,
        "has_partial_return": request.has_partial_return,
        "is_fully_returned": request.is_fully_returned,
        "request_date": request.request_date,
        "delivery_date": request.delivery_date,
        "notes": request.notes,
    }


def _fetch(request_id: str):
    request = repository.fetch(request_id)
    if request is None:
        raise ValidationError(f"Request not found: {request_id}")
    return request


def _entry(entry: Optional[AuditLogEntry]) -> Optional[Dict]:
    return entry.to_item() if entry else None


def _priority(value: str) -> Priority:
    try:
        return Priority(value)
    except ValueError:
        raise ValidationError(f"Invalid priority: {value}")


def _customer(customer_id: str):
    customer = customer_repo.fetch(customer_id)
    if customer is None:
        raise ValidationError(f"Customer not found: {customer_id}")
    return customer


def _product(product_id: str):
    product = product_repo.fetch(product_id)
    if product is None:
        raise ValidationError(f"Product not found: {product_id}")
    return product


def _relations(args: Dict, current_product=None) -> Dict:
    """customer_id / product_id / size_id değerlerini kayıtlara çevirir.
    Beden, verilen (yoksa mevcut) ürünün bedenleri arasında aranır."""
    resolved = {}
    if args.get("customer_id"):
        resolved["customer"] = _customer(args["customer_id"])
    if args.get("product_id"):
        resolved["product"] = _product(args["product_id"])
    if args.get("size_id"):
        product = resolved.get("product", current_product)
        size = next((s for s in product.sizes if s.size_id == args["size_id"]), None) if product else None
        if size is None:
            raise ValidationError(f"Size not found for product: {args['size_id']}")
        resolved["product_size"] = size
    return resolved


def list_requests(args: Dict) -> Dict:
    items = filter_requests(repository.fetch_all(), _criteria(args))
    items = sort_requests(items, SortOrder(args.get("sort_order", SortOrder.NEWEST_FIRST.value)))
    page = paginate(items, args.get("page", 0), args.get("page_size", 50))
    return {"success": True, "total": len(items), "count": len(page), "data": [_summary(r) for r in page]}


def get_request(request_id: str) -> Dict:
    request = repository.fetch(request_id)
    if request is None:
        return {"success": False, "error": "Request not found"}
    return {"success": True, "data": _summary(request)}


def create_request(args: Dict) -> Dict:
    relations = _relations(args)
    request = service.create_request(
        relations.get("customer"), relations.get("product"), args["quantity"], _operator(args),
        product_size=relations.get("product_size"),
        priority=_priority(args.get("priority", Priority.MEDIUM.value)),
        notes=args.get("notes"),
    )
    return {"success": True, "data": _summary(request)}


def batch_create_requests(items: List[Dict], operator: Optional[Operator]) -> Dict:
    specs = []
    unresolved = []
    for index, item in enumerate(items):
        try:
            relations = _relations(item)
            priority = _priority(item.get("priority", Priority.MEDIUM.value))
        except ValidationError as e:
            unresolved.append({"item": f"#{index}", "errors": [str(e)]})
            continue
        specs.append(CreationSpec(
            customer=relations.get("customer"),
            product=relations.get("product"),
            quantity=item.get("quantity", 0),
            product_size=relations.get("product_size"),
            priority=priority,
            notes=item.get("notes"),
        ))
    result = service.create_batch(specs, operator)
    return {
        "success": True,
        "created": result.succeeded_ids,
        "failed": unresolved + [{"item": f.request_id, "errors": f.errors} for f in result.failed],
        "batch_id": result.batch_entry.batch_id if result.batch_entry else None,
    }


def process_delivery(request_id: str, quantity: int, notes: Optional[str], operator: Optional[Operator]) -> Dict:
    request = _fetch(request_id)
    entry = service.apply_delivery(request, quantity, notes, operator)
    return {"success": True, "data": _summary(request), "audit": _entry(entry)}


def batch_process_delivery(items: List[Dict], operator: Optional[Operator]) -> Dict:
    operations = []
    missing = []
    for item in items:
        request = repository.fetch(item["request_id"])
        if request is None:
            missing.append(item["request_id"])
            continue
        operations.append((request, item["quantity"], item.get("notes")))
    result = service.apply_batch(operations, operator)
    return {
        "success": True,
        "succeeded": result.succeeded_ids,
        "failed": [{"request_id": f.request_id, "errors": f.errors} for f in result.failed],
        "not_found": missing,
        "batch_id": result.batch_entry.batch_id if result.batch_entry else None,
    }


def update_request(request_id: str, fields: Dict, operator: Optional[Operator]) -> Dict:
    request = _fetch(request_id)
    unknown = sorted(set(fields) - {"customer_id", "product_id", "size_id", "quantity", "priority", "notes"})
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")
    proposed = _relations(fields, current_product=request.product)
    if "product_id" in fields and "size_id" not in fields:
        # ürün değişince eski beden geçersiz olur
        proposed["product_size"] = None
    for name in ("quantity", "notes"):
        if name in fields:
            proposed[name] = fields[name]
    if "priority" in fields:
        proposed["priority"] = _priority(fields["priority"])
    entry = service.update_fields(request, proposed, operator)
    return {"success": True, "changed": entry is not None, "data": _summary(request), "audit": _entry(entry)}


def change_status(request_id: str, status: str, force: bool, reason: str, operator: Optional[Operator]) -> Dict:
    request = _fetch(request_id)
    entry = service.change_status(request, RequestStatus(status), operator, force=force, reason=reason)
    return {"success": True, "data": _summary(request), "audit": _entry(entry)}


def refund_request(request_id: str, reason: str, operator: Optional[Operator]) -> Dict:
    request = _fetch(request_id)
    entry = service.process_refund(request, reason, operator)
    return {"success": True, "data": _summary(request), "audit": _entry(entry)}


def delete_request(request_id: str, operator: Optional[Operator]) -> Dict:
    request = _fetch(request_id)
    entry = service.delete_request(request, operator)
    return {"success": True, "request_id": request_id, "audit": _entry(entry)}


def customer_groups(args: Dict) -> Dict:
    groups = group_by_customer(filter_requests(repository.fetch_all(), _criteria(args)))
    if args.get("group_search"):
        groups = search_groups(groups, args["group_search"])
    return {"success": True, "count": len(groups), "data": [
        {
            "customer_id": g.customer_id,
            "customer_name": g.customer_name,
            "customer_address": g.customer_address,
            "item_count": len(g.items),
            "total_quantity": g.total_quantity,
            "returnable_quantity": g.returnable_quantity,
            "returned_quantity": g.returned_quantity,
        }
        for g in groups
    ]}


def get_statistics(args: Dict) -> Dict:
    stats = compute_statistics(filter_requests(repository.fetch_all(), _criteria(args)))
    return {"success": True, "data": stats.__dict__}


def get_audit_history(request_id: str, limit: int = 50) -> Dict:
    """EntityTimeIndex GSI kullanarak talebin audit geçmişini getirir."""
    try:
        table = dynamodb.Table(settings.audit_table)
        resp = table.query(
            IndexName="EntityTimeIndex",
            KeyConditionExpression=Key("entity_id").eq(request_id),
            Limit=limit, ScanIndexForward=False
        )
        entries = [AuditLogEntry.from_item(_to_json(i)) for i in resp.get("Items", [])]
        data = []
        for e in entries:
            item = e.to_item()
            item["operation_details"] = json.loads(item["operation_details"])
            data.append(item)
        return {"success": True, "count": len(data), "data": data}
    except Exception as e:
        return {"success": False, "error": str(e), "data": []}


def export_return_orders(args: Dict) -> Dict:
    if not settings.export_bucket:
        return {"success": False, "error": "STOCKOUT_EXPORT_BUCKET is not configured"}
    items = filter_requests(repository.fetch_all(), _criteria(args))
    key = f"exports/{export_filename('return_orders')}.csv"
    try:
        url = upload_export(return_orders_csv(items), key, s3, settings.export_bucket)
        return {"success": True, "count": len(items), "key": key, "url": url}
    except Exception as e:
        return {"success": False, "error": str(e)}


# --- Müşteri / ürün ---

def _customer_data(customer) -> Dict:
    return {"customer_id": customer.customer_id, "name": customer.name,
            "address": customer.address, "phone": customer.phone}


def _product_data(product) -> Dict:
    return {"product_id": product.product_id, "name": product.name, "sku": product.sku,
            "sizes": [{"size_id": s.size_id, "size": s.size} for s in product.sizes]}


def _import_data(result) -> Dict:
    return {
        "success": True,
        "created": len(result.created),
        "errors": result.errors,
        "batch_id": result.batch_entry.batch_id if result.batch_entry else None,
    }


def list_customers(search_text: str = "") -> Dict:
    needle = search_text.strip().lower()
    customers = [
        c for c in customer_repo.fetch_all()
        if not needle or needle in c.name.lower() or needle in c.address.lower()
    ]
    customers.sort(key=lambda c: c.name.lower())
    return {"success": True, "count": len(customers), "data": [_customer_data(c) for c in customers]}


def create_customer(args: Dict) -> Dict:
    customer = catalog.create_customer(args["name"], args["address"], _operator(args), phone=args.get("phone", ""))
    return {"success": True, "data": _customer_data(customer)}


def update_customer(customer_id: str, fields: Dict, operator: Optional[Operator]) -> Dict:
    customer = _customer(customer_id)
    entry = catalog.update_customer(customer, fields, operator)
    return {"success": True, "changed": entry is not None, "data": _customer_data(customer), "audit": _entry(entry)}


def delete_customer(customer_id: str, operator: Optional[Operator]) -> Dict:
    entry = catalog.delete_customer(_customer(customer_id), operator)
    return {"success": True, "customer_id": customer_id, "audit": _entry(entry)}


def list_products(search_text: str = "") -> Dict:
    needle = search_text.strip().lower()
    products = [
        p for p in product_repo.fetch_all()
        if not needle or needle in p.name.lower() or needle in p.sku.lower()
    ]
    products.sort(key=lambda p: p.name.lower())
    return {"success": True, "count": len(products), "data": [_product_data(p) for p in products]}


def create_product(args: Dict) -> Dict:
    product = catalog.create_product(
        args["name"], _operator(args), sku=args.get("sku", ""), sizes=args.get("sizes", [])
    )
    return {"success": True, "data": _product_data(product)}


def update_product(product_id: str, fields: Dict, operator: Optional[Operator]) -> Dict:
    product = _product(product_id)
    entry = catalog.update_product(product, fields, operator)
    return {"success": True, "changed": entry is not None, "data": _product_data(product), "audit": _entry(entry)}


def delete_product(product_id: str, operator: Optional[Operator]) -> Dict:
    entry = catalog.delete_product(_product(product_id), operator)
    return {"success": True, "product_id": product_id, "audit": _entry(entry)}


def import_customers_csv(text: str, operator: Optional[Operator]) -> Dict:
    return _import_data(catalog.import_customers(parse_customers_csv(text), operator))


def import_products_csv(text: str, operator: Optional[Operator]) -> Dict:
    return _import_data(catalog.import_products(parse_products_csv(text), operator))


if __name__ == "__main__":
    import asyncio
    from mcp.server.stdio import stdio_server

    async def run():
        async with stdio_server() as (read, write):
            await app.run(read, write, app.create_initialization_options())

    asyncio.run(run())

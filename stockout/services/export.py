"""CSV dışa/içe aktarma ve S3 üzerinden paylaşım.

Dışa aktarılan dosyalar UTF-8 CSV'dir (Excel ile açılabilir). Paylaşım için
dosya S3'e yüklenir ve süreli (presigned) bir bağlantı döndürülür.
"""

from __future__ import annotations

import csv
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from io import StringIO
from pathlib import Path
from typing import Any, Iterable

from botocore.exceptions import ClientError

from stockout.models.out_of_stock import Customer, OutOfStockRequest, Product, ProductSize, generate_sku

logger = logging.getLogger(__name__)

RETURN_ORDER_HEADER = ["Müşteri Adı", "Müşteri Adresi", "Ürün Adı", "Teslim Edilen", "Kalan", "Teslim Tarihi"]
CUSTOMER_HEADER = ["Ad", "Adres", "Telefon", "Oluşturma Tarihi"]
PRODUCT_HEADER = ["Ürün Adı", "SKU", "Bedenler", "Oluşturma Tarihi"]
NOT_DELIVERED = "Teslim edilmedi"


@dataclass
class ImportResult:
    items: list = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.items) or not self.errors


def _date_only(value: str) -> str:
    return value[:10] if value else ""


def _to_csv(header: list[str], rows: Iterable[list[Any]]) -> str:
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def return_orders_csv(requests: Iterable[OutOfStockRequest]) -> str:
    rows = [
        [
            r.customer_display_name,
            r.customer_address,
            r.product_display_name,
            r.delivery_quantity,
            r.remaining_quantity,
            _date_only(r.delivery_date) if r.delivery_date else NOT_DELIVERED,
        ]
        for r in requests
    ]
    return _to_csv(RETURN_ORDER_HEADER, rows)


def customers_csv(customers: Iterable[Customer]) -> str:
    rows = [[c.name, c.address, c.phone, _date_only(c.created_at)] for c in customers]
    return _to_csv(CUSTOMER_HEADER, rows)


def products_csv(products: Iterable[Product]) -> str:
    rows = [[p.name, p.sku, ",".join(p.size_names), _date_only(p.created_at)] for p in products]
    return _to_csv(PRODUCT_HEADER, rows)


def return_order_template() -> str:
    return _to_csv(
        RETURN_ORDER_HEADER,
        [["Ahmet Yılmaz", "Kadıköy, İstanbul", "Klasik Tişört", 30, 20, "2025-01-15"]],
    )


def customer_template() -> str:
    return _to_csv(CUSTOMER_HEADER[:3], [["Ahmet Yılmaz", "Kadıköy, İstanbul", "05321234567"]])


def product_template() -> str:
    return _to_csv(
        ["Ürün Adı", "SKU", "Bedenler (virgülle ayrılmış)"],
        [["Klasik Tişört", "PRD-001", "XS,S,M,L,XL"]],
    )


def write_csv(content: str, directory: Path, filename: str) -> Path:
    """CSV içeriğini diske yazar. Excel'in UTF-8'i tanıması için BOM eklenir."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{filename}.csv"
    path.write_text(content, encoding="utf-8-sig")
    return path


def export_filename(prefix: str) -> str:
    return f"{prefix}_{datetime.utcnow().strftime('%Y%m%dT%H%M%S')}"


def upload_export(
    content: str,
    key: str,
    s3_client: Any,
    bucket: str,
    expires_in: int = 3600,
) -> str:
    """Dosyayı S3'e yükler ve paylaşım için süreli bağlantı döndürür."""
    try:
        s3_client.put_object(
            Bucket=bucket,
            Key=key,
            Body=content.encode("utf-8-sig"),
            ContentType="text/csv; charset=utf-8",
        )
        return s3_client.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=expires_in,
        )
    except ClientError as e:
        logger.error("Dışa aktarma yüklenemedi [%s]: %s", key, e)
        raise


# --- İçe aktarma ---

def _rows(text: str) -> tuple[list[str], list[tuple[int, list[str]]]]:
    """Başlık satırını ve boş olmayan veri satırlarını (satır no ile) döndürür."""
    reader = csv.reader(StringIO(text.lstrip("\ufeff")))
    header: list[str] = []
    rows = []
    for line_no, row in enumerate(reader, start=1):
        cells = [c.strip() for c in row]
        if line_no == 1:
            header = cells
            continue
        if not any(cells):
            continue
        rows.append((line_no, cells))
    return header, rows


def parse_customers_csv(text: str) -> ImportResult:
    """Ad, Adres, Telefon sütunlarından müşteri listesi üretir."""
    result = ImportResult()
    _, rows = _rows(text)
    for line_no, cells in rows:
        if len(cells) < 3:
            result.errors.append(f"Satır {line_no}: veri formatı hatalı")
            continue
        name, address, phone = cells[0], cells[1], cells[2]
        if not name or not address:
            result.errors.append(f"Satır {line_no}: ad ve adres boş olamaz")
            continue
        result.items.append(
            Customer(customer_id=str(uuid.uuid4()), name=name, address=address, phone=phone)
        )
    return result


def parse_products_csv(text: str) -> ImportResult:
    """Ürün Adı, SKU, Bedenler sütunlarından ürün listesi üretir.

    Beden sütunu virgülle ayrılmış tek hücre ya da satırın kalan hücreleri
    olabilir. Dışa aktarılmış dosyada son sütun tarih olduğundan yalnızca
    üçüncü hücre okunur. SKU boşsa ``PRD-xxxxxxxx`` üretilir.
    """
    result = ImportResult()
    header, rows = _rows(text)
    exported = header == PRODUCT_HEADER
    for line_no, cells in rows:
        if len(cells) < 3:
            result.errors.append(f"Satır {line_no}: veri formatı hatalı")
            continue
        name, sku = cells[0], cells[1]
        if not name:
            result.errors.append(f"Satır {line_no}: ürün adı boş olamaz")
            continue
        product_id = str(uuid.uuid4())
        sku = sku or generate_sku()
        size_cells = cells[2:3] if exported else cells[2:]
        size_labels = [s.strip() for cell in size_cells for s in cell.split(",") if s.strip()]
        sizes = [
            ProductSize(size_id=str(uuid.uuid4()), size=label, product_id=product_id)
            for label in size_labels
        ]
        result.items.append(Product(product_id=product_id, name=name, sku=sku, sizes=sizes))
    return result

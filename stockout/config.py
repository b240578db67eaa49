"""Merkezi .env yükleyici ve ayarlar. Tüm scriptler bunu import etsin."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from botocore.config import Config
from dotenv import load_dotenv

# Proje kökündeki .env dosyasını bul ve yükle
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    aws_region: str = "us-west-2"
    requests_table: str = "OutOfStockRequests"
    customers_table: str = "Customers"
    products_table: str = "Products"
    audit_table: str = "AuditLogs"
    export_bucket: Optional[str] = None
    max_attempts: int = 3
    log_level: str = "INFO"

    @property
    def boto_config(self) -> Config:
        return Config(retries={"max_attempts": self.max_attempts})


def get_settings() -> Settings:
    """Ortam değişkenlerinden ayarları okur."""
    return Settings(
        aws_region=os.environ.get("AWS_DEFAULT_REGION", "us-west-2"),
        requests_table=os.environ.get("STOCKOUT_REQUESTS_TABLE", "OutOfStockRequests"),
        customers_table=os.environ.get("STOCKOUT_CUSTOMERS_TABLE", "Customers"),
        products_table=os.environ.get("STOCKOUT_PRODUCTS_TABLE", "Products"),
        audit_table=os.environ.get("STOCKOUT_AUDIT_TABLE", "AuditLogs"),
        export_bucket=os.environ.get("STOCKOUT_EXPORT_BUCKET") or None,
        max_attempts=int(os.environ.get("STOCKOUT_AWS_MAX_ATTEMPTS", "3")),
        log_level=os.environ.get("STOCKOUT_LOG_LEVEL", "INFO"),
    )

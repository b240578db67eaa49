"""Müşteri eksik ürün talepleri: teslim mutabakatı ve audit kaydı."""

__version__ = "0.1.0"

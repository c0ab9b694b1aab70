"""Catalog admin service: category consistency and product image ingestion."""

__version__ = "0.1.0"

"""Catalog sync service: mirrors WooCommerce orders and products locally."""

__version__ = "1.0.0"

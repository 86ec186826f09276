"""Expiration alert listing."""

from .query import AlertFilters, AlertItem, AlertPage, list_alerts

__all__ = ["AlertFilters", "AlertItem", "AlertPage", "list_alerts"]

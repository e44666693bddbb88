from __future__ import annotations

import logging
from typing import Iterable

from pydantic import ValidationError

from app.config import get_settings
from app.schemas.alert import AlertRead, ProductWarning
from app.schemas.product import ProductRead
from app.services.api_client import unwrap

logger = logging.getLogger(__name__)

_SEVERITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def parse_alerts(payload) -> list[AlertRead]:
    items = unwrap(payload, "alerts", "data")
    if isinstance(items, dict):
        items = unwrap(items, "alerts", "items")
    alerts = []
    for item in items if isinstance(items, list) else []:
        try:
            alerts.append(AlertRead.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping malformed alert: %s", exc)
    return alerts


def product_warnings(products: Iterable[ProductRead], *, now=None) -> list[ProductWarning]:
    """Stock and expiry conditions of the loaded products, most severe first."""
    window = get_settings().EXPIRING_SOON_DAYS
    warnings: list[ProductWarning] = []
    for product in products:
        base = {"product_id": product.id, "product_name": product.name, "qr_code": product.qr_code}
        total = product.stock_total
        if total <= 0:
            warnings.append(ProductWarning(
                kind="out-of-stock",
                severity="critical",
                message="{} is out of stock".format(product.name),
                **base,
            ))
        elif total <= product.threshold:
            warnings.append(ProductWarning(
                kind="low-stock",
                severity="high",
                message="{} has only {} units left".format(product.name, total),
                **base,
            ))

        days = product.days_until_expiry(now)
        if days is None:
            continue
        if days < 0:
            warnings.append(ProductWarning(
                kind="expired",
                severity="critical",
                message="{} expired {} day(s) ago".format(product.name, -days),
                **base,
            ))
        elif days <= window:
            warnings.append(ProductWarning(
                kind="expiring-soon",
                severity="medium",
                message="{} expires in {} day(s)".format(product.name, days),
                **base,
            ))
    warnings.sort(key=lambda warning: (_SEVERITY_ORDER.get(warning.severity, 9), warning.product_name.lower()))
    return warnings


def summarize_warnings(warnings: Iterable[ProductWarning]) -> dict[str, int]:
    summary = {"out-of-stock": 0, "low-stock": 0, "expired": 0, "expiring-soon": 0}
    for warning in warnings:
        summary[warning.kind] = summary.get(warning.kind, 0) + 1
    return summary


__all__ = ["parse_alerts", "product_warnings", "summarize_warnings"]

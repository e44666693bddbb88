"""Inventory reports built from the loaded product list.

Every report has a tabular form (CSV and Excel) and a plain-text form. The
text form is exactly that: a ``.txt`` download, not a PDF.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from app.config import get_settings
from app.schemas.product import ProductRead
from app.services.stock_service import STATUS_LOW_STOCK, STATUS_OUT_OF_STOCK

REPORT_TYPES = {
    "products": "Products Report",
    "stock-valuation": "Stock Valuation Report",
    "low-stock": "Low Stock Report",
    "expiry": "Expiry Report",
    "sales": "Sales Activity Report",
}

FORMATS = {
    "csv": "text/csv",
    "txt": "text/plain",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

PRODUCT_HEADERS = ["Name", "QR Code", "Category", "Price", "Quantity", "Value", "Expiration Date"]
VALUATION_HEADERS = ["Category", "Product Count", "Total Quantity", "Total Value", "Average Value"]
LOW_STOCK_HEADERS = ["Name", "QR Code", "Category", "Current Stock", "Status"]
EXPIRY_HEADERS = ["Name", "QR Code", "Category", "Expiration Date", "Days Until Expiry", "Status"]
SALES_HEADERS = ["Date", "Quantity Sold", "Revenue", "Transactions"]


@dataclass
class Report:
    report_id: str
    title: str
    headers: list
    rows: list = field(default_factory=list)
    text: str = ""


def _num(value):
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _money(value: float) -> str:
    return "{:.2f}".format(value or 0)


def _date_label(product: ProductRead) -> str:
    expiry = product.expiry
    return expiry.isoformat() if expiry else "N/A"


def _stamp(now: Optional[datetime]) -> str:
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def build_products_report(products: Iterable[ProductRead], *, now=None, period=None) -> Report:
    products = list(products)
    rows = [
        [
            product.name,
            product.qr_code,
            product.category_name,
            _num(product.price),
            product.stock_total,
            _money(product.value),
            _date_label(product),
        ]
        for product in products
    ]
    lines = ["PRODUCTS REPORT", "Generated: {}".format(_stamp(now))]
    if period:
        lines.append("Date Range: {} to {}".format(*period))
    lines += [
        "",
        "Total Products: {}".format(len(products)),
        "Total Value: ${}".format(_money(sum(product.value for product in products))),
        "",
        "PRODUCT DETAILS:",
    ]
    for product in products:
        lines += [
            "",
            "- {} ({})".format(product.name, product.qr_code),
            "  Category: {}".format(product.category_name),
            "  Price: ${}".format(_num(product.price)),
            "  Quantity: {}".format(product.stock_total),
            "  Value: ${}".format(_money(product.value)),
            "  Expires: {}".format(_date_label(product)),
        ]
    return Report("products", REPORT_TYPES["products"], PRODUCT_HEADERS, rows, "\n".join(lines) + "\n")


def build_stock_valuation_report(products: Iterable[ProductRead], *, now=None) -> Report:
    groups: dict[str, dict] = {}
    for product in products:
        group = groups.setdefault(product.category_name or "Uncategorized", {"count": 0, "quantity": 0, "value": 0.0})
        group["count"] += 1
        group["quantity"] += product.stock_total
        group["value"] += product.value

    rows = [
        [name, data["count"], data["quantity"], _money(data["value"]), _money(data["value"] / data["count"])]
        for name, data in groups.items()
    ]
    total_value = sum(data["value"] for data in groups.values())
    lines = [
        "STOCK VALUATION REPORT",
        "Generated: {}".format(_stamp(now)),
        "",
        "Total Inventory Value: ${}".format(_money(total_value)),
        "",
        "BREAKDOWN BY CATEGORY:",
    ]
    for name, data in groups.items():
        share = (data["value"] / total_value * 100) if total_value else 0.0
        lines += [
            "",
            "{}:".format(name.upper()),
            "  Products: {}".format(data["count"]),
            "  Total Quantity: {}".format(data["quantity"]),
            "  Total Value: ${}".format(_money(data["value"])),
            "  Average Value: ${}".format(_money(data["value"] / data["count"])),
            "  Percentage of Total: {:.1f}%".format(share),
        ]
    return Report("stock-valuation", REPORT_TYPES["stock-valuation"], VALUATION_HEADERS, rows, "\n".join(lines) + "\n")


def build_low_stock_report(products: Iterable[ProductRead], *, now=None) -> Report:
    low = [product for product in products if product.is_low_stock]
    out = [product for product in low if product.stock_total <= 0]
    rows = [
        [
            product.name,
            product.qr_code,
            product.category_name,
            product.stock_total,
            STATUS_OUT_OF_STOCK if product.stock_total <= 0 else STATUS_LOW_STOCK,
        ]
        for product in low
    ]
    lines = [
        "LOW STOCK REPORT",
        "Generated: {}".format(_stamp(now)),
        "",
        "Summary:",
        "- Total Low Stock Items: {}".format(len(low)),
        "- Out of Stock Items: {}".format(len(out)),
        "- Low Stock Items: {}".format(len(low) - len(out)),
        "",
        "OUT OF STOCK PRODUCTS:",
    ]
    lines += ["- {} ({})".format(product.name, product.qr_code) for product in out]
    lines += ["", "LOW STOCK PRODUCTS:"]
    lines += [
        "- {} ({}) - {} remaining".format(product.name, product.qr_code, product.stock_total)
        for product in low
        if product.stock_total > 0
    ]
    return Report("low-stock", REPORT_TYPES["low-stock"], LOW_STOCK_HEADERS, rows, "\n".join(lines) + "\n")


def build_expiry_report(products: Iterable[ProductRead], *, now=None, window_days: Optional[int] = None) -> Report:
    window = window_days if window_days is not None else get_settings().EXPIRY_WINDOW_DAYS
    expired = []
    expiring = []
    for product in products:
        days = product.days_until_expiry(now)
        if days is None:
            continue
        if days < 0:
            expired.append((product, days))
        elif days <= window:
            expiring.append((product, days))

    rows = [
        [
            product.name,
            product.qr_code,
            product.category_name,
            _date_label(product),
            days,
            "Expired" if days < 0 else "Expiring Soon",
        ]
        for product, days in expired + expiring
    ]
    lines = [
        "EXPIRY REPORT",
        "Generated: {}".format(_stamp(now if isinstance(now, datetime) else None)),
        "",
        "Summary:",
        "- Expired Products: {}".format(len(expired)),
        "- Expiring Soon ({} days): {}".format(window, len(expiring)),
        "",
        "EXPIRED PRODUCTS:",
    ]
    lines += [
        "- {} ({}) - Expired {}".format(product.name, product.qr_code, _date_label(product))
        for product, _days in expired
    ]
    lines += ["", "EXPIRING SOON:"]
    lines += [
        "- {} ({}) - Expires in {} days ({})".format(product.name, product.qr_code, days, _date_label(product))
        for product, days in expiring
    ]
    return Report("expiry", REPORT_TYPES["expiry"], EXPIRY_HEADERS, rows, "\n".join(lines) + "\n")


def build_sales_report(trend: Iterable[dict], *, now=None, period=None) -> Report:
    """Sales per period from the analytics trend endpoint."""
    points = [point for point in trend if isinstance(point, dict)]
    rows = [
        [
            point.get("date", ""),
            point.get("quantitySold", 0),
            _money(point.get("salesValue", 0)),
            point.get("transactions", 0),
        ]
        for point in points
    ]
    total_value = sum(float(point.get("salesValue") or 0) for point in points)
    total_quantity = sum(int(point.get("quantitySold") or 0) for point in points)
    transactions = sum(int(point.get("transactions") or 0) for point in points)
    lines = ["SALES ACTIVITY REPORT", "Generated: {}".format(_stamp(now))]
    if period:
        lines.append("Period: {} to {}".format(*period))
    lines += [
        "",
        "Summary:",
        "- Total Transactions: {}".format(transactions),
        "- Total Items Sold: {}".format(total_quantity),
        "- Total Revenue: ${}".format(_money(total_value)),
        "- Average Transaction Value: ${}".format(_money(total_value / transactions if transactions else 0)),
        "",
        "DAILY BREAKDOWN:",
    ]
    for point in points:
        lines += [
            "",
            "{}:".format(point.get("date", "")),
            "  Items Sold: {}".format(point.get("quantitySold", 0)),
            "  Revenue: ${}".format(_money(point.get("salesValue", 0))),
            "  Transactions: {}".format(point.get("transactions", 0)),
        ]
    return Report("sales", REPORT_TYPES["sales"], SALES_HEADERS, rows, "\n".join(lines) + "\n")


def to_csv(report: Report) -> str:
    """Header plus one line per row, every field double-quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(report.headers)
    writer.writerows(report.rows)
    return buffer.getvalue()[:-1]


def to_xlsx(report: Report) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = report.title[:31]

    ws.append(report.headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in report.rows:
        ws.append(row)

    for col in range(1, len(report.headers) + 1):
        ws.column_dimensions[get_column_letter(col)].width = 18

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def render(report: Report, fmt: str) -> bytes:
    if fmt == "csv":
        return to_csv(report).encode("utf-8")
    if fmt == "txt":
        return report.text.encode("utf-8")
    if fmt == "xlsx":
        return to_xlsx(report)
    raise ValueError("Unsupported report format: {}".format(fmt))


def report_filename(report_id: str, fmt: str, today: Optional[date] = None) -> str:
    return "{}-report-{}.{}".format(report_id, (today or date.today()).isoformat(), fmt)


__all__ = [
    "FORMATS",
    "REPORT_TYPES",
    "Report",
    "build_expiry_report",
    "build_low_stock_report",
    "build_products_report",
    "build_sales_report",
    "build_stock_valuation_report",
    "render",
    "report_filename",
    "to_csv",
    "to_xlsx",
]

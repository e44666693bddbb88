from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.config import get_settings
from app.core.dates import days_until, normalize_date


def _copy_id(data):
    if isinstance(data, dict) and "_id" not in data and "id" in data:
        data = dict(data)
        data["_id"] = data.pop("id")
    return data


class StockInfo(BaseModel):
    godown: int = 0
    store: int = 0
    total: Optional[int] = None
    reserved: int = 0

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _zero_missing(cls, data):
        if isinstance(data, dict):
            data = {key: (0 if value is None and key != "total" else value) for key, value in data.items()}
        return data


class ProductRead(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    name: str = ""
    brand: Optional[str] = None
    description: Optional[str] = None
    price: float = 0.0
    quantity: Optional[int] = None
    stock: Optional[StockInfo] = None
    qr_code: str = Field("", alias="qrCode")
    category: Any = None
    expiration_date: Optional[str] = Field(None, alias="expirationDate")
    image: Optional[str] = None
    low_stock_threshold: Optional[int] = Field(None, alias="lowStockThreshold")
    unit: Optional[str] = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_id(cls, data):
        return _copy_id(data)

    @property
    def stock_total(self) -> int:
        if self.stock is not None and self.stock.total is not None:
            return self.stock.total
        if self.stock is not None and self.quantity is None:
            return self.stock.godown + self.stock.store
        return self.quantity or 0

    @property
    def godown_quantity(self) -> int:
        return self.stock.godown if self.stock is not None else 0

    @property
    def store_quantity(self) -> int:
        if self.stock is not None:
            return self.stock.store
        return self.quantity or 0

    @property
    def threshold(self) -> int:
        if self.low_stock_threshold is not None:
            return self.low_stock_threshold
        return get_settings().LOW_STOCK_THRESHOLD

    @property
    def category_id(self) -> Optional[str]:
        if isinstance(self.category, dict):
            value = self.category.get("_id") or self.category.get("id")
            return str(value) if value is not None else None
        return str(self.category) if self.category is not None else None

    @property
    def category_name(self) -> str:
        if isinstance(self.category, dict):
            return str(self.category.get("name") or "")
        return str(self.category) if self.category is not None else ""

    @property
    def value(self) -> float:
        return self.price * self.stock_total

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock_total <= 0

    @property
    def is_low_stock(self) -> bool:
        return self.stock_total <= self.threshold

    @property
    def expiry(self):
        return normalize_date(self.expiration_date)

    def days_until_expiry(self, now=None) -> Optional[int]:
        return days_until(self.expiration_date, now)

    def is_expired(self, now=None) -> bool:
        days = self.days_until_expiry(now)
        return days is not None and days < 0

    def is_expiring_soon(self, window_days: int, now=None) -> bool:
        days = self.days_until_expiry(now)
        return days is not None and 0 <= days <= window_days

    def with_quantity(self, quantity: int) -> "ProductRead":
        """Copy with the sellable quantity replaced, keeping godown stock."""
        quantity = max(0, int(quantity))
        update = {"quantity": quantity}
        if self.stock is not None:
            store = max(0, quantity - self.stock.godown)
            update["stock"] = self.stock.model_copy(update={"store": store, "total": quantity})
        return self.model_copy(update=update)

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ProductForm(BaseModel):
    name: str
    price: float = Field(ge=0)
    quantity: int = Field(0, ge=0)
    qr_code: str = Field(alias="qrCode")
    category: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    expiration_date: Optional[str] = Field(None, alias="expirationDate")
    low_stock_threshold: Optional[int] = Field(None, ge=0, alias="lowStockThreshold")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Pagination(BaseModel):
    current_page: int = Field(1, alias="currentPage")
    total_pages: int = Field(1, alias="totalPages")
    total_items: int = Field(0, alias="totalItems")
    items_per_page: Optional[int] = Field(None, alias="itemsPerPage")

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _accept_aliases(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            for alias in ("totalProducts", "total"):
                if "totalItems" not in data and alias in data:
                    data["totalItems"] = data[alias]
            if "currentPage" not in data and "page" in data:
                data["currentPage"] = data["page"]
            if "totalPages" not in data and "pages" in data:
                data["totalPages"] = data["pages"]
        return data

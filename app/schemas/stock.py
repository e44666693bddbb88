from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StockMovementRead(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    type: str = ""
    quantity: int = 0
    previous_stock: Any = Field(None, alias="previousStock")
    new_stock: Any = Field(None, alias="newStock")
    location: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    product: Any = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            if "_id" not in data and "id" in data:
                data["_id"] = data.pop("id")
            if "type" not in data and "action" in data:
                data["type"] = data["action"]
            if "quantity" not in data and "change" in data:
                data["quantity"] = data["change"]
            if "product" not in data and "productId" in data:
                data["product"] = data["productId"]
        return data

    @property
    def product_name(self) -> str:
        if isinstance(self.product, dict):
            return str(self.product.get("name") or "")
        return ""

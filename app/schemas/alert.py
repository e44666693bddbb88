from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AlertRead(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    type: str = "general"
    title: str = ""
    message: str = ""
    severity: str = Field("medium", alias="priority")
    product: Any = None
    is_read: bool = Field(False, alias="isRead")
    is_resolved: bool = Field(False, alias="isResolved")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            if "_id" not in data and "id" in data:
                data["_id"] = data.pop("id")
            if "priority" not in data and "severity" in data:
                data["priority"] = data.pop("severity")
            if "product" not in data and "productId" in data:
                data["product"] = data["productId"]
        return data

    @property
    def product_name(self) -> str:
        if isinstance(self.product, dict):
            return str(self.product.get("name") or "")
        return ""


class ProductWarning(BaseModel):
    """Condition derived from the loaded product list, not stored anywhere."""

    kind: str
    severity: str
    product_id: Optional[str] = None
    product_name: str
    qr_code: str = ""
    message: str

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CategoryRead(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    name: str = ""
    description: Optional[str] = None
    parent: Any = None
    icon: Optional[str] = None
    color: Optional[str] = None
    sort_order: int = Field(0, alias="sortOrder")
    is_active: bool = Field(True, alias="isActive")
    product_count: int = Field(0, alias="productCount")

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_id(cls, data):
        if isinstance(data, dict) and "_id" not in data and "id" in data:
            data = dict(data)
            data["_id"] = data.pop("id")
        return data

    @property
    def parent_id(self) -> Optional[str]:
        if isinstance(self.parent, dict):
            value = self.parent.get("_id") or self.parent.get("id")
            return str(value) if value else None
        return str(self.parent) if self.parent else None


class CategoryNode(BaseModel):
    category: CategoryRead
    depth: int = 0
    children: List["CategoryNode"] = []

    @property
    def total_products(self) -> int:
        return self.category.product_count + sum(child.total_products for child in self.children)


class CategoryForm(BaseModel):
    name: str = Field(min_length=1)
    parent: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    sort_order: int = Field(0, alias="sortOrder")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

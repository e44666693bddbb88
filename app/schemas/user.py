from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.constants import ADMIN_ROLES


class UserRead(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    name: str = ""
    email: str = ""
    role: Any = "staff"
    is_active: bool = Field(True, alias="isActive")
    permissions: List[str] = []
    organization: Any = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_id(cls, data):
        if isinstance(data, dict) and "_id" not in data and "id" in data:
            data = dict(data)
            data["_id"] = data.pop("id")
        return data

    @property
    def role_name(self) -> str:
        if isinstance(self.role, dict):
            return str(self.role.get("name") or "")
        return str(self.role or "")

    @property
    def is_admin(self) -> bool:
        return self.role_name.lower() in ADMIN_ROLES

    @property
    def subscription_status(self) -> Optional[str]:
        if isinstance(self.organization, dict):
            subscription = self.organization.get("subscription") or {}
            if isinstance(subscription, dict):
                return subscription.get("status")
        return None

    @property
    def shop_id(self) -> Optional[str]:
        shop = (self.model_extra or {}).get("shop")
        if isinstance(shop, dict):
            shop = shop.get("_id") or shop.get("id")
        if shop:
            return str(shop)
        if isinstance(self.organization, dict):
            value = self.organization.get("_id") or self.organization.get("id")
            return str(value) if value else None
        return None

    def to_cookie(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class RegisterForm(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6)
    role: str = "staff"

    model_config = ConfigDict(str_strip_whitespace=True)

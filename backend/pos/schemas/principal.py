"""
pos/schemas/principal.py
Roles and the Principal model.
"""
from typing import Literal, Optional

from pydantic import BaseModel, Field

Role = Literal["cashier", "manager", "admin"]


class Principal(BaseModel):
    uid: str = Field(..., description="Firebase UID")
    role: Role = Field("cashier", description="cashier | manager | admin")
    email: Optional[str] = Field(None, description="E-mail (if any)")
    display_name: Optional[str] = Field(None, description="Display name (if any)")
    store_id: Optional[str] = Field(None, description="Owner uid of the store this user sells for")

    @property
    def owner_id(self) -> str:
        """Inventory and sales are scoped by the store owner; owners are their own store."""
        return self.store_id or self.uid

    @property
    def is_manager(self) -> bool:
        return self.role in ("manager", "admin")

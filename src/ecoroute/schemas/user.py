# src/ecoroute/schemas/user.py
"""User-facing presence schemas."""

from pydantic import BaseModel, Field


class OnlineUser(BaseModel):
    """Entry of the ``online-users`` presence snapshot."""

    user_id: int = Field(serialization_alias="userId")
    name: str
    role: str

"""
Request and response schemas

Stored documents are plain JSON, so every inbound model allows extra
fields and is dumped with exclude_unset=True to keep the caller's body
verbatim. Only the fields the routes act on are declared, and none of
them is coerced; presence checks happen in the route, not here.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

# ---------- Catalog ----------

class ProductIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    category: Optional[str] = Field(None, description="Catalog bucket name")

# ---------- Bookings ----------

class BookingIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    tableId: Optional[Any] = None
    date: Optional[Any] = None  # YYYY-MM-DD
    time: Optional[Any] = None  # HH:MM
    endTime: Optional[Any] = None  # HH:MM

# ---------- Carts ----------

class Cart(BaseModel):
    model_config = ConfigDict(extra="allow")

    items: Optional[Any] = None

# ---------- Responses ----------

class Message(BaseModel):
    message: str

class Error(BaseModel):
    error: str

"""Shared response schemas."""
from typing import Any, Literal

from pydantic import BaseModel


class APIResponse(BaseModel):
    status: Literal["success", "error"]
    data: Any = None
    message: str | None = None

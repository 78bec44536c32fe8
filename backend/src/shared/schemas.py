from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    code: str
    details: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    status: str
    services: dict[str, str]
    version: str

# ridehail/shared/models/common.py
"""
Общие модели для всех сервисов.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class FieldError(BaseModel):
    """Ошибка валидации одного поля."""

    field: str
    message: str


class APIResponse(BaseModel):
    """
    Конверт ответа: {success, data?, error?, message?, details?}.
    Пустые поля не сериализуются.
    """

    success: bool
    data: Any | None = None
    error: str | None = None
    message: str | None = None
    details: Any | None = None

    @classmethod
    def ok(cls, data: Any = None, message: str | None = None) -> APIResponse:
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str, message: str, details: Any = None) -> APIResponse:
        return cls(success=False, error=error, message=message, details=details)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""

    service: str
    status: str = "healthy"  # healthy, degraded, unhealthy
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    # dependencies: {"postgres": "healthy", "redis": "healthy"}

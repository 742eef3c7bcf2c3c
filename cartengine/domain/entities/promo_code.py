"""Promo code entity model."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cartengine.core.money import to_float
from cartengine.domain.value_objects import PromoCodeStatus, PromoCodeType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime_safe(value: Any) -> datetime | None:
    """Parse ISO strings/datetimes into aware UTC datetimes; None when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class PromoCode(BaseModel):
    """Promo code record as served by the backend (read-only to the cart)."""

    model_config = ConfigDict(from_attributes=True, validate_assignment=False)

    id: str = Field("", description="Promo code ID")
    code: str = Field("", description="Code typed by the customer")
    restaurant_id: Optional[str] = Field(None, description="Restaurant scope, None means global")
    name: str = Field("", description="Display name")
    description: Optional[str] = None
    type: PromoCodeType = Field(PromoCodeType.PERCENTAGE, description="Discount method")
    value: float = Field(0.0, description="Percentage (0-100) or fixed amount")
    minimum_order_amount: float = Field(0.0, ge=0)
    maximum_discount_amount: Optional[float] = None
    start_date: datetime = Field(default_factory=_utcnow)
    end_date: datetime = Field(default_factory=_utcnow)
    status: PromoCodeStatus = PromoCodeStatus.ACTIVE
    usage_limit: Optional[int] = None
    used_count: Optional[int] = None
    user_usage_limit: Optional[int] = 1
    applicable_categories: list[str] = Field(default_factory=list)
    applicable_menu_items: list[str] = Field(default_factory=list)
    is_public: Optional[bool] = True
    image_url: Optional[str] = None
    conditions: Optional[dict[str, Any]] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("id", "code", "name", mode="before")
    @classmethod
    def parse_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("type", mode="before")
    @classmethod
    def parse_type(cls, v: Any) -> PromoCodeType:
        return PromoCodeType.parse(v)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> PromoCodeStatus:
        return PromoCodeStatus.parse(v)

    @field_validator("value", "minimum_order_amount", mode="before")
    @classmethod
    def parse_amount(cls, v: Any) -> float:
        return max(0.0, to_float(v))

    @field_validator("maximum_discount_amount", mode="before")
    @classmethod
    def parse_optional_amount(cls, v: Any) -> float | None:
        if v is None:
            return None
        return to_float(v)

    @field_validator("start_date", "end_date", "created_at", "updated_at", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> datetime:
        return parse_datetime_safe(v) or _utcnow()

    @field_validator("applicable_categories", "applicable_menu_items", mode="before")
    @classmethod
    def parse_id_list(cls, v: Any) -> list[str]:
        if not isinstance(v, (list, tuple)):
            return []
        return [str(entry) for entry in v]

    @field_validator("conditions", mode="before")
    @classmethod
    def parse_conditions(cls, v: Any) -> dict[str, Any] | None:
        return dict(v) if isinstance(v, dict) else None

    def is_active_at(self, now: datetime | None = None) -> bool:
        """Active status, inside the validity window and usage limit not exhausted."""
        now = now or _utcnow()
        if self.status is not PromoCodeStatus.ACTIVE:
            return False
        if not (self.start_date < now < self.end_date):
            return False
        if not self.usage_limit or self.used_count is None:
            return True
        return self.used_count < self.usage_limit

    @property
    def is_active(self) -> bool:
        return self.is_active_at()

    def is_expired_at(self, now: datetime | None = None) -> bool:
        now = now or _utcnow()
        if now > self.end_date:
            return True
        return bool(
            self.usage_limit
            and self.usage_limit > 0
            and self.used_count is not None
            and self.used_count >= self.usage_limit
        )

    def calculate_discount(self, order_amount: float, now: datetime | None = None) -> float:
        """Discount granted on ``order_amount``; never negative, never above the amount.

        Free-delivery and buy-one-get-one codes discount elsewhere and return 0 here.
        """
        if not self.is_active_at(now) or order_amount < self.minimum_order_amount:
            return 0.0

        if self.type is PromoCodeType.PERCENTAGE:
            discount = order_amount * (self.value / 100)
        elif self.type is PromoCodeType.FIXED_AMOUNT:
            discount = self.value
        else:
            discount = 0.0

        if self.maximum_discount_amount is not None and self.maximum_discount_amount > 0:
            discount = min(discount, self.maximum_discount_amount)

        discount = min(discount, order_amount)
        return max(discount, 0.0)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> PromoCode:
        return cls.model_validate(data)

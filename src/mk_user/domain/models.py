"""User read models — pure dataclasses, no SQLAlchemy dependency.

Only the fields checkout and fulfillment read are mapped; profile editing,
authentication and merchant onboarding belong to the account service.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class DeliveryFeeConfig:
    enabled: bool = True
    fee_cents: int | None = None  # None -> platform default
    free_threshold_cents: int | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "DeliveryFeeConfig":
        return cls(
            enabled=bool(raw.get("enabled", True)),
            fee_cents=None if raw.get("fee_cents") is None else int(raw["fee_cents"]),
            free_threshold_cents=(
                None
                if raw.get("free_threshold_cents") is None
                else int(raw["free_threshold_cents"])
            ),
        )


@dataclass
class DeliveryFeeSettings:
    free_delivery_for_all: bool = False
    categories: dict[str, DeliveryFeeConfig] = field(default_factory=dict)  # FeeCategory -> config

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> "DeliveryFeeSettings":
        if not raw:
            return cls()
        categories = {
            key: DeliveryFeeConfig.from_dict(value)
            for key, value in raw.items()
            if key != "free_delivery_for_all" and isinstance(value, dict)
        }
        return cls(
            free_delivery_for_all=bool(raw.get("free_delivery_for_all", False)),
            categories=categories,
        )


@dataclass
class MerchantDetails:
    shop_name: str | None = None
    delivery_fees: DeliveryFeeSettings = field(default_factory=DeliveryFeeSettings)
    deliverable_campuses: list[str] = field(default_factory=list)
    total_revenue: int = 0
    total_sales: int = 0


@dataclass
class UserProfile:
    id: str
    username: str | None
    email: str
    phone: str | None
    roles: list[str] = field(default_factory=list)
    merchant: MerchantDetails | None = None

    @property
    def is_merchant(self) -> bool:
        return "merchant" in self.roles

    @property
    def display_name(self) -> str:
        if self.is_merchant and self.merchant and self.merchant.shop_name:
            return self.merchant.shop_name
        return self.username or ""

"""Core types and DTOs for delivery quote aggregation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DeliveryProvider(str, Enum):
    """Supported carriers. Declaration order is the tie-break priority."""

    CDEK = "cdek"
    BOXBERRY = "boxberry"
    RUSSIAN_POST = "russian_post"

    @property
    def priority(self) -> int:
        return list(DeliveryProvider).index(self)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class InvalidDeliveryRequest(Exception):
    """Caller input is structurally invalid. Never replaced by fallback data."""

    def __init__(self, field_name: str, message: str):
        super().__init__(message)
        self.field = field_name


class CarrierError(Exception):
    """A carrier could not produce a quote (HTTP error, bad payload, auth)."""

    def __init__(self, provider: DeliveryProvider, message: str):
        super().__init__(message)
        self.provider = provider


# ---------------------------------------------------------------------------
# Request / option DTOs
# ---------------------------------------------------------------------------


@dataclass
class PackageDimensions:
    """Package size in centimetres."""

    length: float = 20
    width: float = 20
    height: float = 10


@dataclass
class DeliveryQuoteRequest:
    """A single shipment to price across carriers."""

    from_city: str
    to_city: str
    weight_kg: float = 1.0
    declared_value: float = 0.0
    dimensions: PackageDimensions | None = None
    provider: DeliveryProvider | None = None  # restrict to one carrier

    @property
    def weight_grams(self) -> int:
        return int(round(self.weight_kg * 1000))

    def validate(self) -> None:
        """Raise InvalidDeliveryRequest for structurally invalid input."""
        if not self.from_city or not self.from_city.strip():
            raise InvalidDeliveryRequest("from_city", "Origin city is required")
        if not self.to_city or not self.to_city.strip():
            raise InvalidDeliveryRequest("to_city", "Destination city is required")
        if self.weight_kg is None or self.weight_kg <= 0:
            raise InvalidDeliveryRequest("weight_kg", "Weight must be greater than zero")
        if self.declared_value is None or self.declared_value < 0:
            raise InvalidDeliveryRequest("declared_value", "Declared value must not be negative")
        if self.dimensions is not None:
            for name in ("length", "width", "height"):
                if getattr(self.dimensions, name) <= 0:
                    raise InvalidDeliveryRequest(f"dimensions.{name}", "Dimensions must be greater than zero")


@dataclass
class DeliveryOption:
    """One priced delivery option for one carrier.

    ``price`` is the carrier's quoted price and is never modified;
    ``effective_price`` is what the customer pays after free-shipping rules.
    """

    provider: DeliveryProvider
    display_name: str
    price: float
    eta_min_days: int
    eta_max_days: int
    tariff_code: str | None = None
    tariff_name: str | None = None
    free_shipping_threshold: float | None = None
    is_fallback: bool = False
    effective_price: float | None = None

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"{self.provider.value}: negative price {self.price}")
        if self.eta_min_days > self.eta_max_days:
            logger.warning(
                "Inverted ETA from %s: %d..%d days, swapping",
                self.provider.value,
                self.eta_min_days,
                self.eta_max_days,
                extra={"provider": self.provider.value},
            )
            self.eta_min_days, self.eta_max_days = self.eta_max_days, self.eta_min_days
        if self.effective_price is None:
            self.effective_price = self.price

    def apply_free_shipping(self, declared_value: float) -> bool:
        """Zero the effective price when the order qualifies. Returns True if applied."""
        if self.free_shipping_threshold is not None and declared_value >= self.free_shipping_threshold:
            self.effective_price = 0.0
            return True
        self.effective_price = self.price
        return False

    @property
    def sort_key(self) -> tuple[float, int, int]:
        return (self.effective_price, self.eta_min_days, self.provider.priority)

    def to_dict(self) -> dict:
        return {
            "provider": self.provider.value,
            "name": self.display_name,
            "price": self.effective_price,
            "original_price": self.price,
            "days_min": self.eta_min_days,
            "days_max": self.eta_max_days,
            "tariff_code": self.tariff_code,
            "tariff_name": self.tariff_name,
            "free_threshold": self.free_shipping_threshold,
            "is_fallback": self.is_fallback,
        }


@dataclass
class QuoteResult:
    """Aggregated answer: sorted options plus degraded-carrier disclosure."""

    options: list[DeliveryOption] = field(default_factory=list)
    failed_providers: list[DeliveryProvider] = field(default_factory=list)
    errors: dict[DeliveryProvider, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "results": [o.to_dict() for o in self.options],
            "failed_providers": [p.value for p in self.failed_providers],
            "errors": {p.value: msg for p, msg in self.errors.items()},
        }


# ---------------------------------------------------------------------------
# Static fallback table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FallbackTariff:
    """Representative price/ETA used when a carrier cannot be reached.

    Prices are conservative upper estimates for a typical 1 kg parcel.
    """

    display_name: str
    base_price: float
    eta_min_days: int
    eta_max_days: int
    free_shipping_threshold: float | None = None

    def to_option(self, provider: DeliveryProvider) -> DeliveryOption:
        return DeliveryOption(
            provider=provider,
            display_name=self.display_name,
            price=self.base_price,
            eta_min_days=self.eta_min_days,
            eta_max_days=self.eta_max_days,
            free_shipping_threshold=self.free_shipping_threshold,
            is_fallback=True,
        )


DEFAULT_FALLBACK_TARIFFS: dict[DeliveryProvider, FallbackTariff] = {
    DeliveryProvider.CDEK: FallbackTariff(
        display_name="СДЭК",
        base_price=650.0,
        eta_min_days=2,
        eta_max_days=5,
        free_shipping_threshold=5000.0,
    ),
    DeliveryProvider.BOXBERRY: FallbackTariff(
        display_name="Boxberry",
        base_price=600.0,
        eta_min_days=3,
        eta_max_days=7,
        free_shipping_threshold=5000.0,
    ),
    DeliveryProvider.RUSSIAN_POST: FallbackTariff(
        display_name="Почта России",
        base_price=550.0,
        eta_min_days=5,
        eta_max_days=14,
    ),
}

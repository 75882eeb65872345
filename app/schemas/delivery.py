"""Pydantic request/response models for the delivery endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.delivery.types import DeliveryProvider, DeliveryQuoteRequest, PackageDimensions


class DimensionsIn(BaseModel):
    length: float = Field(gt=0)
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class DeliveryCalculateRequest(BaseModel):
    """Checkout delivery estimate.

    Cities are not length-validated here; an empty destination is reported
    by the aggregator as an invalid request on the ``to_city`` field.
    """

    from_city: str | None = None  # defaults to the warehouse city
    to_city: str
    weight: float = Field(default=1.0, gt=0, description="kg")
    declared_value: float = Field(default=0.0, ge=0)
    dimensions: DimensionsIn | None = None
    provider: DeliveryProvider | None = None

    def to_quote_request(self, default_from_city: str) -> DeliveryQuoteRequest:
        return DeliveryQuoteRequest(
            from_city=self.from_city or default_from_city,
            to_city=self.to_city,
            weight_kg=self.weight,
            declared_value=self.declared_value,
            dimensions=PackageDimensions(**self.dimensions.model_dump()) if self.dimensions else None,
            provider=self.provider,
        )


class DeliveryOptionOut(BaseModel):
    provider: DeliveryProvider
    name: str
    price: float
    original_price: float
    days_min: int
    days_max: int
    tariff_code: str | None = None
    tariff_name: str | None = None
    free_threshold: float | None = None
    is_fallback: bool


class DeliveryCalculateResponse(BaseModel):
    results: list[DeliveryOptionOut]
    failed_providers: list[DeliveryProvider]
    errors: dict[str, str]


class DeliveryZoneOut(BaseModel):
    provider: DeliveryProvider
    name: str
    base_cost: float
    delivery_days_min: int
    delivery_days_max: int
    free_threshold: float | None = None
    configured: bool


class DeliveryZonesResponse(BaseModel):
    zones: list[DeliveryZoneOut]

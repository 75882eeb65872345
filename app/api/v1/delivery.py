"""Delivery cost endpoints for checkout and the admin delivery page."""

import time

from fastapi import APIRouter, Depends

from app.core.config import settings
from app.core.dependencies import get_delivery_aggregator, require_role
from app.delivery.aggregator import DeliveryQuoteAggregator
from app.schemas.delivery import (
    DeliveryCalculateRequest,
    DeliveryCalculateResponse,
    DeliveryZonesResponse,
)

router = APIRouter(prefix="/delivery", tags=["delivery"])

# Whole-request budget; individual carriers are additionally capped by
# the aggregator's own timeout.
REQUEST_DEADLINE_SECONDS = 10.0


@router.post("/calculate", response_model=DeliveryCalculateResponse)
async def calculate(
    body: DeliveryCalculateRequest,
    aggregator: DeliveryQuoteAggregator = Depends(get_delivery_aggregator),
):
    request = body.to_quote_request(settings.delivery_origin_city)
    result = await aggregator.quote(request, deadline=time.monotonic() + REQUEST_DEADLINE_SECONDS)
    return result.to_dict()


@router.get(
    "/zones",
    response_model=DeliveryZonesResponse,
    dependencies=[Depends(require_role("manager"))],
)
async def list_zones(aggregator: DeliveryQuoteAggregator = Depends(get_delivery_aggregator)):
    return {"zones": aggregator.list_zones()}

"""Delivery Quote Aggregator: concurrent carrier fan-out with fallback synthesis.

For one shipment:
  1. Validates the request (InvalidDeliveryRequest is the only error raised)
  2. Queries every selected carrier concurrently, one attempt each,
     bounded by a per-carrier timeout (capped by the caller's deadline)
  3. Replaces every failed, timed-out or unconfigured carrier with a
     static fallback option (is_fallback=True)
  4. Applies free-shipping thresholds to the effective price
  5. Sorts by (effective price, min ETA, provider priority)

The result order is a pure function of the collected options, never of
response arrival order. No state is kept between calls.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import httpx

from app.core.metrics import DELIVERY_QUOTES
from app.delivery.carriers import BaseCarrierClient
from app.delivery.types import (
    DEFAULT_FALLBACK_TARIFFS,
    CarrierError,
    DeliveryOption,
    DeliveryProvider,
    DeliveryQuoteRequest,
    FallbackTariff,
    InvalidDeliveryRequest,
    QuoteResult,
)

logger = logging.getLogger(__name__)

DEFAULT_CARRIER_TIMEOUT = 5.0
NOT_CONFIGURED = "Carrier not configured"


@dataclass
class _CarrierOutcome:
    """Tagged result of one carrier call: either an option or an error."""

    provider: DeliveryProvider
    option: DeliveryOption | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.option is not None


class DeliveryQuoteAggregator:
    """Fan-out quote aggregator over a fixed set of carriers.

    Usage:
        aggregator = DeliveryQuoteAggregator(build_carriers(settings))
        result = await aggregator.quote(DeliveryQuoteRequest("Москва", "Казань", 2.5, 3200))
        result.options          # sorted, never empty
        result.failed_providers # carriers answered from the fallback table
    """

    def __init__(
        self,
        carriers: dict[DeliveryProvider, BaseCarrierClient],
        fallback_tariffs: dict[DeliveryProvider, FallbackTariff] | None = None,
        timeout: float = DEFAULT_CARRIER_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            carriers: Carrier clients keyed by provider
            fallback_tariffs: Static table used when a carrier cannot answer
            timeout: Per-carrier timeout in seconds
            transport: Optional httpx transport (tests, proxies)
        """
        self.carriers = carriers
        self.fallback_tariffs = fallback_tariffs or DEFAULT_FALLBACK_TARIFFS
        self.timeout = timeout
        self._transport = transport

        if not carriers:
            raise ValueError("At least one carrier is required")
        missing = [p.value for p in carriers if p not in self.fallback_tariffs]
        if missing:
            raise ValueError(f"No fallback tariff for carriers: {missing}")

    def _selected(self, request: DeliveryQuoteRequest) -> list[DeliveryProvider]:
        providers = sorted(self.carriers, key=lambda p: p.priority)
        if request.provider is not None:
            if request.provider not in self.carriers:
                raise InvalidDeliveryRequest("provider", f"Unknown delivery provider: {request.provider.value}")
            providers = [request.provider]
        return providers

    def _carrier_timeout(self, deadline: float | None) -> float:
        if deadline is None:
            return self.timeout
        return min(self.timeout, deadline - time.monotonic())

    async def _quote_one(
        self,
        provider: DeliveryProvider,
        request: DeliveryQuoteRequest,
        client: httpx.AsyncClient,
        timeout: float,
    ) -> _CarrierOutcome:
        carrier = self.carriers[provider]

        if not carrier.is_configured:
            return _CarrierOutcome(provider, error=NOT_CONFIGURED)
        if timeout <= 0:
            return _CarrierOutcome(provider, error="Request deadline exceeded")

        try:
            option = await asyncio.wait_for(carrier.quote(request, client), timeout=timeout)
        except asyncio.TimeoutError:
            return _CarrierOutcome(provider, error=f"Timeout after {timeout:.1f}s")
        except CarrierError as e:
            return _CarrierOutcome(provider, error=str(e))
        except httpx.HTTPError as e:
            return _CarrierOutcome(provider, error=f"Transport error: {e}")
        except Exception as e:
            logger.exception("Unexpected error from carrier %s", provider.value)
            return _CarrierOutcome(provider, error=f"{type(e).__name__}: {e}")

        option.is_fallback = False
        return _CarrierOutcome(provider, option=option)

    def fallback_option(self, provider: DeliveryProvider) -> DeliveryOption:
        """Deterministic fallback quote for one carrier."""
        return self.fallback_tariffs[provider].to_option(provider)

    async def quote(self, request: DeliveryQuoteRequest, deadline: float | None = None) -> QuoteResult:
        """Price the shipment across carriers.

        Args:
            request: Shipment parameters
            deadline: Optional time.monotonic() deadline from the caller;
                caps every per-carrier timeout

        Raises:
            InvalidDeliveryRequest: the request itself is malformed
        """
        request.validate()
        providers = self._selected(request)
        timeout = self._carrier_timeout(deadline)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            outcomes = await asyncio.gather(
                *(self._quote_one(p, request, client, timeout) for p in providers)
            )

        result = QuoteResult()
        for outcome in outcomes:
            if outcome.ok:
                option = outcome.option
                DELIVERY_QUOTES.labels(provider=outcome.provider.value, outcome="live").inc()
            else:
                option = self.fallback_option(outcome.provider)
                result.failed_providers.append(outcome.provider)
                result.errors[outcome.provider] = outcome.error
                DELIVERY_QUOTES.labels(provider=outcome.provider.value, outcome="fallback").inc()
                log = logger.debug if outcome.error == NOT_CONFIGURED else logger.warning
                log(
                    "Carrier %s unavailable, using fallback quote: %s",
                    outcome.provider.value,
                    outcome.error,
                    extra={"provider": outcome.provider.value},
                )

            if option.apply_free_shipping(request.declared_value):
                logger.info(
                    "Free shipping applied for %s: carrier price %.2f, declared value %.2f >= %.2f",
                    option.provider.value,
                    option.price,
                    request.declared_value,
                    option.free_shipping_threshold,
                )
            result.options.append(option)

        result.options.sort(key=lambda o: o.sort_key)
        result.failed_providers.sort(key=lambda p: p.priority)

        logger.info(
            "Delivery quote %s → %s: %d options, %d fallback",
            request.from_city,
            request.to_city,
            len(result.options),
            len(result.failed_providers),
        )
        return result

    def list_zones(self) -> list[dict]:
        """Fallback table as shown on the admin delivery page."""
        return [
            {
                "provider": provider.value,
                "name": tariff.display_name,
                "base_cost": tariff.base_price,
                "delivery_days_min": tariff.eta_min_days,
                "delivery_days_max": tariff.eta_max_days,
                "free_threshold": tariff.free_shipping_threshold,
                "configured": provider in self.carriers and self.carriers[provider].is_configured,
            }
            for provider, tariff in sorted(self.fallback_tariffs.items(), key=lambda item: item[0].priority)
        ]

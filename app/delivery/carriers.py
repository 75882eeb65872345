"""Carrier Clients: protocol-level handling for each delivery provider.

Each client translates a DeliveryQuoteRequest into the carrier's HTTP API,
sends it, and returns a live DeliveryOption. Any failure is raised as
CarrierError; timeouts are enforced by the aggregator, not here.

Carrier-specific behaviors:
  - CDEK: OAuth client_credentials token, then tarifflist; cheapest tariff wins
  - Boxberry: GET json.php?method=DeliveryCosts with token in the query
  - Russian Post: AccessToken + Basic user auth, price in kopecks
"""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod

import httpx

from app.delivery.types import (
    CarrierError,
    DeliveryOption,
    DeliveryProvider,
    DeliveryQuoteRequest,
    PackageDimensions,
)

logger = logging.getLogger(__name__)

DEFAULT_DIMENSIONS = PackageDimensions()


class BaseCarrierClient(ABC):
    """Base class for all carrier clients."""

    provider: DeliveryProvider
    display_name: str

    def __init__(self, enabled: bool = True, free_shipping_threshold: float | None = None):
        self.enabled = enabled
        self.free_shipping_threshold = free_shipping_threshold

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True when the carrier is enabled and has credentials."""
        ...

    @abstractmethod
    async def quote(self, request: DeliveryQuoteRequest, client: httpx.AsyncClient) -> DeliveryOption:
        """Price the shipment. Raises CarrierError on any failure."""
        ...

    def _error(self, message: str) -> CarrierError:
        return CarrierError(self.provider, message)

    def _json(self, resp: httpx.Response) -> dict:
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._error(f"HTTP {e.response.status_code}") from e
        try:
            data = resp.json()
        except ValueError as e:
            raise self._error("Invalid JSON in response") from e
        if not isinstance(data, dict):
            raise self._error("Unexpected response shape")
        return data

    def _option(self, price: float, eta_min: int, eta_max: int, **kwargs) -> DeliveryOption:
        return DeliveryOption(
            provider=self.provider,
            display_name=self.display_name,
            price=float(price),
            eta_min_days=int(eta_min),
            eta_max_days=int(eta_max),
            free_shipping_threshold=self.free_shipping_threshold,
            **kwargs,
        )


# ---------------------------------------------------------------------------
# CDEK
# ---------------------------------------------------------------------------


class CdekClient(BaseCarrierClient):
    """CDEK API v2 client."""

    provider = DeliveryProvider.CDEK
    display_name = "СДЭК"
    prod_url = "https://api.cdek.ru/v2"
    test_url = "https://api.edu.cdek.ru/v2"

    def __init__(self, account: str, password: str, test_mode: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.account = account
        self.password = password
        self.base_url = self.test_url if test_mode else self.prod_url

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.account and self.password)

    async def _get_token(self, client: httpx.AsyncClient) -> str:
        resp = await client.post(
            f"{self.base_url}/oauth/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.account,
                "client_secret": self.password,
            },
        )
        data = self._json(resp)
        token = data.get("access_token")
        if not token:
            raise self._error("Failed to authenticate with CDEK")
        return token

    async def quote(self, request: DeliveryQuoteRequest, client: httpx.AsyncClient) -> DeliveryOption:
        token = await self._get_token(client)
        dims = request.dimensions or DEFAULT_DIMENSIONS

        resp = await client.post(
            f"{self.base_url}/calculator/tarifflist",
            json={
                "from_location": {"city": request.from_city},
                "to_location": {"city": request.to_city},
                "packages": [
                    {
                        "weight": request.weight_grams,
                        "length": int(dims.length),
                        "width": int(dims.width),
                        "height": int(dims.height),
                    }
                ],
            },
            headers={"Authorization": f"Bearer {token}"},
        )
        data = self._json(resp)

        tariffs = [t for t in data.get("tariff_codes") or [] if t.get("delivery_sum") is not None]
        if not tariffs:
            raise self._error("No CDEK tariffs available")

        cheapest = min(tariffs, key=lambda t: t["delivery_sum"])
        return self._option(
            price=cheapest["delivery_sum"],
            eta_min=cheapest.get("period_min", 0),
            eta_max=cheapest.get("period_max", cheapest.get("period_min", 0)),
            tariff_code=str(cheapest.get("tariff_code", "")) or None,
            tariff_name=cheapest.get("tariff_name"),
        )


# ---------------------------------------------------------------------------
# Boxberry
# ---------------------------------------------------------------------------


class BoxberryClient(BaseCarrierClient):
    """Boxberry json.php API client."""

    provider = DeliveryProvider.BOXBERRY
    display_name = "Boxberry"
    prod_url = "https://api.boxberry.ru"
    test_url = "https://test.api.boxberry.ru"
    default_period = 3
    period_spread = 2

    def __init__(self, token: str, test_mode: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.token = token
        self.base_url = self.test_url if test_mode else self.prod_url

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.token)

    async def quote(self, request: DeliveryQuoteRequest, client: httpx.AsyncClient) -> DeliveryOption:
        resp = await client.get(
            f"{self.base_url}/json.php",
            params={
                "token": self.token,
                "method": "DeliveryCosts",
                "weight": str(request.weight_grams),
                "target": request.to_city,
                "ordersum": str(request.declared_value or 1000),
            },
        )
        data = self._json(resp)

        if not data.get("price"):
            raise self._error(data.get("err") or "Boxberry calculation failed")

        period = int(data.get("delivery_period") or self.default_period)
        return self._option(
            price=data["price"],
            eta_min=period,
            eta_max=period + self.period_spread,
        )


# ---------------------------------------------------------------------------
# Russian Post
# ---------------------------------------------------------------------------


class RussianPostClient(BaseCarrierClient):
    """Russian Post otpravka-api tariff client."""

    provider = DeliveryProvider.RUSSIAN_POST
    display_name = "Почта России"
    api_url = "https://otpravka-api.pochta.ru/1.0/tariff"
    default_eta = (5, 14)

    def __init__(self, token: str, login: str, password: str, index_from: str = "101000", **kwargs):
        super().__init__(**kwargs)
        self.token = token
        self.login = login
        self.password = password
        self.index_from = index_from

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.token)

    def _headers(self) -> dict[str, str]:
        basic = base64.b64encode(f"{self.login}:{self.password}".encode()).decode()
        return {
            "Authorization": f"AccessToken {self.token}",
            "X-User-Authorization": f"Basic {basic}",
            "Content-Type": "application/json;charset=UTF-8",
        }

    async def quote(self, request: DeliveryQuoteRequest, client: httpx.AsyncClient) -> DeliveryOption:
        payload = {
            "index-from": self.index_from,
            "index-to": request.to_city,
            "mail-category": "ORDINARY",
            "mail-type": "POSTAL_PARCEL",
            "mass": request.weight_grams,
            "fragile": False,
        }
        if request.dimensions:
            # API expects millimetres
            payload["dimension"] = {
                "length": int(request.dimensions.length * 10),
                "width": int(request.dimensions.width * 10),
                "height": int(request.dimensions.height * 10),
            }

        resp = await client.post(self.api_url, json=payload, headers=self._headers())
        data = self._json(resp)

        total_rate = data.get("total-rate")
        if not total_rate:
            raise self._error("Russian Post calculation failed")

        delivery_time = data.get("delivery-time") or {}
        return self._option(
            price=total_rate / 100,  # kopecks → roubles
            eta_min=delivery_time.get("min-days") or self.default_eta[0],
            eta_max=delivery_time.get("max-days") or self.default_eta[1],
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_carriers(settings) -> dict[DeliveryProvider, BaseCarrierClient]:
    """Create one client per known carrier from application settings.

    Unconfigured carriers are still returned; the aggregator answers for
    them from the fallback table without any network call.
    """
    return {
        DeliveryProvider.CDEK: CdekClient(
            account=settings.cdek_account,
            password=settings.cdek_password,
            test_mode=settings.cdek_test_mode,
            enabled=settings.cdek_enabled,
            free_shipping_threshold=settings.cdek_free_shipping_threshold,
        ),
        DeliveryProvider.BOXBERRY: BoxberryClient(
            token=settings.boxberry_token,
            test_mode=settings.boxberry_test_mode,
            enabled=settings.boxberry_enabled,
            free_shipping_threshold=settings.boxberry_free_shipping_threshold,
        ),
        DeliveryProvider.RUSSIAN_POST: RussianPostClient(
            token=settings.russian_post_token,
            login=settings.russian_post_login,
            password=settings.russian_post_password,
            index_from=settings.russian_post_index_from,
            enabled=settings.russian_post_enabled,
            free_shipping_threshold=settings.russian_post_free_shipping_threshold,
        ),
    }

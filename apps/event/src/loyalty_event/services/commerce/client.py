"""Commerce platform read/write contract and its HTTP implementation."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from loyalty_event.core.settings import Settings
from loyalty_event.schemas.commerce import (
    CartDiscount,
    CustomObject,
    Customer,
    CustomerUpdateAction,
    Order,
    Payment,
    serialize_actions,
)

from .auth import CachedTokenProvider
from .errors import CommerceError, ResourceNotFoundError, VersionConflictError

ModelT = TypeVar("ModelT", bound=BaseModel)

class CommercePlatform(Protocol):
    """Subset of platform reads and writes the loyalty engine depends on."""

    async def get_order(self, order_id: str) -> Order:
        """Return the order or raise ``ResourceNotFoundError``."""

    async def get_payment(self, payment_id: str) -> Payment:
        """Return the payment or raise ``CommerceError``."""

    async def get_cart_discount(self, discount_id: str) -> CartDiscount:
        """Return the cart discount or raise ``CommerceError``."""

    async def get_customer(self, customer_id: str) -> Customer:
        """Return the customer with its custom type expanded."""

    async def update_customer(
        self,
        customer_id: str,
        *,
        version: int,
        actions: Sequence[CustomerUpdateAction],
    ) -> Customer:
        """Apply actions atomically or raise ``VersionConflictError``."""

    async def get_custom_object(self, container: str, key: str) -> CustomObject | None:
        """Return the custom object, or ``None`` when it does not exist."""

    async def put_custom_object(self, container: str, key: str, value: Any) -> CustomObject:
        """Create or replace a custom object."""


def _parse_response_body(response: httpx.Response) -> Mapping[str, Any]:
    try:
        parsed = response.json()
    except ValueError:
        return {"text": response.text}
    if isinstance(parsed, Mapping):
        return parsed
    return {"data": parsed}


def _error_message(response: httpx.Response) -> str:
    body = _parse_response_body(response)
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    return f"Commerce API responded with status {response.status_code}"


class HttpCommerceClient(CommercePlatform):
    """``httpx`` client for the project-scoped commerce REST API."""

    def __init__(
        self,
        *,
        api_url: str,
        project_key: str,
        token_provider: CachedTokenProvider,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not api_url:
            raise ValueError("Commerce API URL must be configured")
        if not project_key:
            raise ValueError("Commerce project key must be configured")
        self._base_url = f"{api_url.rstrip('/')}/{project_key}"
        self._tokens = token_provider
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        self._owns_client = http_client is None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> "HttpCommerceClient":
        return cls(
            api_url=settings.ctp_api_url,
            project_key=settings.ctp_project_key,
            token_provider=CachedTokenProvider.from_settings(settings, http_client=http_client),
            http_client=http_client,
            timeout_seconds=settings.ctp_timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Mapping[str, Any]:
        url = f"{self._base_url}/{path.lstrip('/')}"
        response: httpx.Response | None = None
        for attempt in range(2):
            token = await self._tokens.get()
            request_kwargs: dict[str, Any] = {
                "method": method,
                "url": url,
                "headers": {"Authorization": f"Bearer {token}"},
            }
            if params:
                request_kwargs["params"] = params
            if json is not None:
                request_kwargs["json"] = json
            try:
                response = await self._client.request(**request_kwargs)
            except httpx.HTTPError as exc:
                raise CommerceError(str(exc), url=url) from exc
            if response.status_code == 401 and attempt == 0:
                logger.info("Commerce access token rejected; refreshing", url=url)
                self._tokens.invalidate()
                continue
            break

        assert response is not None
        if response.status_code == 404:
            raise ResourceNotFoundError(_error_message(response), status_code=404, url=url)
        if response.status_code == 409:
            raise VersionConflictError(_error_message(response), status_code=409, url=url)
        if response.status_code >= 400:
            raise CommerceError(_error_message(response), status_code=response.status_code, url=url)
        return _parse_response_body(response)

    @staticmethod
    def _load(model: type[ModelT], payload: Mapping[str, Any], path: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise CommerceError(f"Unexpected {model.__name__} payload: {exc.error_count()} errors", url=path) from exc

    async def get_order(self, order_id: str) -> Order:
        path = f"orders/{order_id}"
        return self._load(Order, await self._request("GET", path), path)

    async def get_payment(self, payment_id: str) -> Payment:
        path = f"payments/{payment_id}"
        return self._load(Payment, await self._request("GET", path), path)

    async def get_cart_discount(self, discount_id: str) -> CartDiscount:
        path = f"cart-discounts/{discount_id}"
        return self._load(CartDiscount, await self._request("GET", path), path)

    async def get_customer(self, customer_id: str) -> Customer:
        path = f"customers/{customer_id}"
        payload = await self._request("GET", path, params={"expand": "custom.type"})
        return self._load(Customer, payload, path)

    async def update_customer(
        self,
        customer_id: str,
        *,
        version: int,
        actions: Sequence[CustomerUpdateAction],
    ) -> Customer:
        path = f"customers/{customer_id}"
        payload = await self._request(
            "POST",
            path,
            json={"version": version, "actions": serialize_actions(list(actions))},
        )
        return self._load(Customer, payload, path)

    async def get_custom_object(self, container: str, key: str) -> CustomObject | None:
        path = f"custom-objects/{container}/{key}"
        try:
            payload = await self._request("GET", path)
        except ResourceNotFoundError:
            return None
        return self._load(CustomObject, payload, path)

    async def put_custom_object(self, container: str, key: str, value: Any) -> CustomObject:
        payload = await self._request(
            "POST",
            "custom-objects",
            json={"container": container, "key": key, "value": value},
        )
        return self._load(CustomObject, payload, "custom-objects")


__all__ = ["CommercePlatform", "HttpCommerceClient"]

"""
HTTP gateway to the REST API.

Reads are idempotent and retried with jittered backoff on transport errors
and 5xx responses. Mutations are sent exactly once; any failure is raised to
the caller.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from session_client.errors import SessionClientError, SessionGoneError
from shared.config.logging import client_logger as logger
from shared.config.settings import settings
from shared.infrastructure.events import calculate_retry_delay_with_jitter


class SessionApiClient:
    """
    Guest-side API client. The guest identity travels in `X-Guest-Id`.

    Pass `transport` to run against an in-process app or a mock.
    """

    def __init__(
        self,
        base_url: str | None = None,
        guest_id: int | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        read_retry_attempts: int | None = None,
        read_retry_delay: float | None = None,
    ):
        self._guest_id = guest_id
        self._read_retry_attempts = max(1, read_retry_attempts or settings.read_retry_attempts)
        self._read_retry_delay = (
            read_retry_delay if read_retry_delay is not None else settings.read_retry_delay
        )
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout or settings.api_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "SessionApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def guest_id(self) -> int | None:
        return self._guest_id

    def set_guest(self, guest_id: int | None) -> None:
        self._guest_id = guest_id

    # =========================================================================
    # Transport
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        if self._guest_id is None:
            return {}
        return {"X-Guest-Id": str(self._guest_id)}

    @staticmethod
    def _raise_for_status(response: httpx.Response, gone_on_404: bool) -> None:
        if response.is_success:
            return
        try:
            body = response.json()
        except ValueError:
            body = None
        detail = body.get("detail") if isinstance(body, dict) else response.text
        message = f"{response.request.method} {response.request.url.path} failed with {response.status_code}"
        if gone_on_404 and response.status_code == 404:
            raise SessionGoneError(message, response.status_code, str(detail))
        raise SessionClientError(message, response.status_code, str(detail))

    async def _read(self, path: str, gone_on_404: bool = False, **params: Any) -> Any:
        last_error: SessionClientError | None = None
        for attempt in range(self._read_retry_attempts):
            try:
                response = await self._client.get(path, params=params or None, headers=self._headers())
            except httpx.TransportError as e:
                last_error = SessionClientError(f"GET {path} failed: {e}")
            else:
                if response.status_code < 500:
                    self._raise_for_status(response, gone_on_404)
                    return response.json()
                last_error = SessionClientError(
                    f"GET {path} failed with {response.status_code}", response.status_code
                )

            if attempt < self._read_retry_attempts - 1:
                delay = calculate_retry_delay_with_jitter(
                    attempt, base_delay=self._read_retry_delay, max_delay=2.0
                )
                logger.warning("Read failed, retrying", path=path, attempt=attempt + 1, delay=round(delay, 2))
                await asyncio.sleep(delay)

        raise last_error

    async def _write(
        self,
        method: str,
        path: str,
        json: dict | None = None,
        gone_on_404: bool = False,
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json, headers=self._headers())
        except httpx.TransportError as e:
            raise SessionClientError(f"{method} {path} failed: {e}") from e
        self._raise_for_status(response, gone_on_404)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_session(self, session_id: int) -> dict:
        return await self._read(f"/api/diner/sessions/{session_id}", gone_on_404=True)

    async def get_cart(self, session_id: int) -> dict:
        return await self._read(f"/api/diner/sessions/{session_id}/cart", gone_on_404=True)

    async def get_orders(self, session_id: int) -> list[dict]:
        return await self._read(f"/api/diner/sessions/{session_id}/orders", gone_on_404=True)

    async def get_menu(self) -> dict:
        return await self._read("/api/menu")

    # =========================================================================
    # Mutations (never retried)
    # =========================================================================

    async def join_table(self, token: str, name: str) -> dict:
        return await self._write("POST", f"/api/diner/tables/{token}/join", {"name": name})

    async def increment(
        self,
        session_id: int,
        product_id: int,
        delta: int,
        addon_ids: list[int] | None = None,
        observation: str | None = None,
    ) -> dict:
        body = {
            "product_id": product_id,
            "delta": delta,
            "addon_ids": addon_ids or [],
            "observation": observation,
        }
        return await self._write(
            "POST", f"/api/diner/sessions/{session_id}/cart/increment", body, gone_on_404=True
        )

    async def change_line(self, session_id: int, line_id: int, delta: int) -> dict:
        return await self._write(
            "PATCH", f"/api/diner/sessions/{session_id}/cart/lines/{line_id}", {"delta": delta}
        )

    async def remove_line(self, session_id: int, line_id: int) -> None:
        await self._write("DELETE", f"/api/diner/sessions/{session_id}/cart/lines/{line_id}")

    async def clear_cart(self, session_id: int) -> dict:
        return await self._write("DELETE", f"/api/diner/sessions/{session_id}/cart")

    async def submit_cart(self, session_id: int, general_note: str | None = None) -> dict:
        return await self._write(
            "POST",
            f"/api/diner/sessions/{session_id}/orders",
            {"general_note": general_note},
            gone_on_404=True,
        )

    async def approve_order(self, order_id: int) -> dict:
        return await self._write("POST", f"/api/diner/orders/{order_id}/approve")

    async def reject_order(self, order_id: int) -> dict:
        return await self._write("POST", f"/api/diner/orders/{order_id}/reject")

"""
Shared plumbing for gateways reached over plain JSON/HTTP.

Wraps an httpx.Client with per-call logging and timing. It also translates
transport and HTTP errors into ProviderError, so the concrete adapters only
describe request and response shapes.

Usage:
    class MyGatewayProvider(HttpGatewayProvider):
        name = "my_gateway"

        def create_intent(self, params):
            data = self._request("POST", "/payments", operation="create_intent", json={...})
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from payments.adapters.base import PaymentProvider
from payments.exceptions import ProviderError


class HttpGatewayProvider(PaymentProvider):
    """
    Base class for httpx-backed gateway adapters.

    Args:
        base_url: Gateway API root
        timeout: Per-request timeout in seconds
        client: Optional preconfigured httpx.Client (tests pass one built on
            httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                auth=self._auth(),
                headers=self._default_headers(),
            )
        return self._client

    def _auth(self) -> httpx.Auth | None:
        return None

    def _default_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        **context: Any,
    ) -> dict[str, Any]:
        """
        Perform one gateway call and return the decoded JSON body.

        Raises:
            ProviderError: On timeout, transport failure, non-2xx response
                or a body that is not JSON.
        """
        logger = self.get_logger()
        log_context = {"provider": self.name, "operation": operation, **context}
        start_time = time.time()
        logger.info("Starting gateway operation", extra=log_context)

        try:
            response = self.client.request(method, path, json=json, headers=headers)
            response.raise_for_status()
            body = response.json() if response.content else {}
        except httpx.TimeoutException as e:
            logger.error(
                "Gateway request timed out",
                extra={**log_context, "duration_ms": (time.time() - start_time) * 1000},
            )
            raise ProviderError(
                f"{self.name} request timed out",
                provider=self.name,
                provider_code="timeout",
                is_retryable=True,
                error_code="PROVIDER_TIMEOUT",
            ) from e
        except httpx.HTTPStatusError as e:
            raise self._translate_status_error(e, log_context) from e
        except httpx.TransportError as e:
            logger.error("Gateway transport error", extra=log_context, exc_info=True)
            raise ProviderError(
                f"Could not connect to {self.name}. Please retry.",
                provider=self.name,
                provider_code="transport_error",
                is_retryable=True,
                error_code="PROVIDER_UNAVAILABLE",
            ) from e
        except ValueError as e:
            raise ProviderError(
                f"{self.name} returned a non-JSON response",
                provider=self.name,
                provider_code="invalid_response",
            ) from e

        logger.info(
            "Gateway operation completed",
            extra={**log_context, "duration_ms": (time.time() - start_time) * 1000},
        )
        return body

    def _translate_status_error(
        self, error: httpx.HTTPStatusError, log_context: dict[str, Any]
    ) -> ProviderError:
        response = error.response
        status_code = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = {}
        code, message = self._error_details(body)
        retryable = status_code == 429 or status_code >= 500

        log_level = logging.WARNING if retryable else logging.ERROR
        self.get_logger().log(
            log_level,
            "Gateway returned an error",
            extra={**log_context, "status_code": status_code, "provider_code": code},
        )
        return ProviderError(
            message or f"{self.name} request failed with HTTP {status_code}",
            provider=self.name,
            provider_code=code,
            status_code=status_code,
            is_retryable=retryable,
        )

    def _error_details(self, body: dict[str, Any]) -> tuple[str | None, str | None]:
        """Extract (code, message) from a gateway error body."""
        if not isinstance(body, dict):
            return None, None
        return body.get("code"), body.get("description") or body.get("message")

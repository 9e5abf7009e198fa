"""Issuing provider HTTP client for authorization callbacks and test helpers"""

import httpx
from typing import Any, Dict, List, Optional, Tuple
from issuing_gateway.config import settings
from issuing_gateway.domain.exceptions import ProviderAPIError, ProviderTimeoutError
from issuing_gateway.infrastructure.observability.metrics import provider_callback_latency_histogram


def encode_form(params: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """
    Flatten nested params into the provider's bracketed form encoding.

    Example:
        {"merchant_data": {"name": "Paul"}} -> [("merchant_data[name]", "Paul")]
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        name = f"{prefix}[{key}]" if prefix else key
        if isinstance(value, dict):
            pairs.extend(encode_form(value, name))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        else:
            pairs.append((name, str(value)))
    return pairs


class IssuingClient:
    """Client for the issuing provider's authorization API"""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.stripe_api_key
        self.base_url = base_url or settings.stripe_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def _headers(self, account: Optional[str]) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Stripe-Version": settings.stripe_api_version,
        }
        if account:
            headers["Stripe-Account"] = account
        return headers

    async def _post(
        self,
        path: str,
        params: Dict[str, Any],
        account: Optional[str] = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        """
        POST form params to the provider and return the decoded JSON body.

        Raises:
            ProviderTimeoutError: When the call exceeds the timeout
            ProviderAPIError: On HTTP errors, network failures or a non-JSON response
        """
        effective_timeout = timeout if timeout is not None else self.timeout
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=effective_timeout,
            transport=self.transport,
        ) as client:
            try:
                with provider_callback_latency_histogram.time():
                    response = await client.post(
                        path,
                        data=dict(encode_form(params)),
                        headers=self._headers(account),
                    )
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                raise ProviderTimeoutError(f"Issuing API timeout after {effective_timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise ProviderAPIError(f"Issuing API error: {e.response.status_code} {_error_message(e.response)}") from e
            except httpx.RequestError as e:
                raise ProviderAPIError(f"Issuing API unreachable: {e}") from e
            except ValueError as e:
                raise ProviderAPIError(f"Invalid response from issuing API: {e}") from e

    async def approve_authorization(
        self,
        authorization_id: str,
        amount: int | None = None,
        account: str | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        """Approve a pending authorization; amount below the requested one is a partial approval"""
        return await self._post(
            f"/v1/issuing/authorizations/{authorization_id}/approve",
            {"amount": amount},
            account=account,
            timeout=timeout,
        )

    async def decline_authorization(
        self,
        authorization_id: str,
        reason: str | None = None,
        account: str | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        """Decline a pending authorization, recording the reason as metadata"""
        return await self._post(
            f"/v1/issuing/authorizations/{authorization_id}/decline",
            {"metadata": {"decline_reason": reason}} if reason else {},
            account=account,
            timeout=timeout,
        )

    async def create_test_authorization(
        self,
        card_id: str,
        amount: int,
        currency: str,
        merchant_data: Dict[str, Any],
        is_amount_controllable: bool = False,
        account: str | None = None,
    ) -> Dict[str, Any]:
        """Create a test-mode authorization, which triggers the authorization request webhook"""
        return await self._post(
            "/v1/test_helpers/issuing/authorizations",
            {
                "card": card_id,
                "amount": amount,
                "currency": currency,
                "merchant_data": merchant_data,
                "is_amount_controllable": is_amount_controllable,
            },
            account=account,
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    error = body.get("error") if isinstance(body, dict) else None
    return error.get("message", "") if isinstance(error, dict) else ""

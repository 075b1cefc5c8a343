"""HTTP plumbing shared by the Bodima API clients."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import aiohttp

from ..exceptions import AuthError, NetworkError, ServerError, ValidationError
from .const import AUTH_HEADER, AUTH_PREFIX, DEFAULT_HEADERS

_LOGGER = logging.getLogger(__name__)
_DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=60)


class BaseApiClient:
    """Base class for clients of the Bodima REST backend.

    Every response is wrapped in ``{"success": bool, "message": str, "data": T}``.
    ``_request_data`` unwraps that envelope and raises a typed error when the
    backend reports a failure.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str | None = None,
        api_uri: str | None = None,
        token: str | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        retry_count: int = 0,
    ) -> None:
        if session is None:
            raise ValidationError("Session is required.")
        self._session = session
        self._base_url = self._normalize_base_url(base_url)
        self._api_uri = self._normalize_api_uri(api_uri)
        self._token = token or None
        self._timeout = timeout or _DEFAULT_TIMEOUT
        self._retry_count = max(0, retry_count)

    def set_token(self, token: str | None) -> None:
        self._token = token or None

    def _build_url(self, path: str) -> str:
        if not isinstance(path, str) or not path:
            raise ValidationError("Path must be a non-empty string.")
        if path.startswith("http://") or path.startswith("https://"):
            raise ValidationError("Use relative paths when building API requests.")
        if self._base_url is None:
            raise ValidationError("base_url is required to build API requests.")
        normalized_path = path if path.startswith("/") else f"/{path}"
        return f"{self._base_url}{self._api_uri}{normalized_path}"

    def _build_headers(self) -> dict[str, str]:
        headers = dict(DEFAULT_HEADERS)
        if self._token:
            headers[AUTH_HEADER] = f"{AUTH_PREFIX}{self._token}"
        return headers

    async def _request_data(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        url = self._build_url(path)
        request_kwargs: dict[str, Any] = {"headers": self._build_headers()}
        if json is not None:
            request_kwargs["json"] = json
        if params:
            request_kwargs["params"] = dict(params)
        payload = await self._request(method, url, **request_kwargs)
        return self._unwrap(payload)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        retries = self._retry_count if method.upper() == "GET" else 0
        attempts = retries + 1
        last_error: Exception | None = None
        for attempt in range(attempts):
            try:
                async with self._session.request(
                    method,
                    url,
                    timeout=self._timeout,
                    **kwargs,
                ) as response:
                    await self._raise_for_status(response)
                    try:
                        return await response.json()
                    except (aiohttp.ContentTypeError, ValueError) as exc:
                        raise ServerError("Response did not contain valid JSON.") from exc
            except (aiohttp.ClientError, TimeoutError) as exc:
                last_error = exc
                if attempt < attempts - 1:
                    _LOGGER.debug("%s %s failed, retrying (%s)", method, url, exc)
                    continue
                raise NetworkError("Network request failed.", detail=str(exc) or None) from exc
        if last_error is not None:
            raise NetworkError("Network request failed.") from last_error
        raise ServerError("Request failed.")

    async def _raise_for_status(self, response: aiohttp.ClientResponse) -> None:
        if 200 <= response.status < 300:
            return
        if response.status in (401, 403):
            raise AuthError("Authentication failed.")
        message = await self._error_message_from_response(response)
        if message:
            raise ServerError(message, user_message=message)
        raise ServerError(f"Request failed with status {response.status}.")

    async def _error_message_from_response(self, response: aiohttp.ClientResponse) -> str | None:
        try:
            data = await response.json()
        except (aiohttp.ContentTypeError, ValueError):
            return None
        if isinstance(data, dict):
            message = data.get("message") or data.get("error")
            if isinstance(message, str):
                trimmed = message.strip()
                if trimmed:
                    return trimmed
        return None

    def _unwrap(self, payload: Any) -> Any:
        if not isinstance(payload, dict):
            raise ServerError("Response envelope must be a JSON object.")
        success = payload.get("success")
        message = payload.get("message")
        if isinstance(message, str):
            message = message.strip() or None
        else:
            message = None
        if success is not True:
            if message:
                raise ServerError(message, user_message=message)
            raise ServerError("Request was not successful.")
        return payload.get("data")

    def _normalize_base_url(self, base_url: str | None) -> str | None:
        if base_url is None:
            return None
        if not isinstance(base_url, str) or not base_url.strip():
            raise ValidationError("base_url must be a non-empty string.")
        return base_url.strip().rstrip("/")

    def _normalize_api_uri(self, api_uri: str | None) -> str:
        if api_uri is None:
            return ""
        if not isinstance(api_uri, str):
            raise ValidationError("api_uri must be a string.")
        normalized = api_uri.strip().strip("/")
        if not normalized:
            return ""
        return f"/{normalized}"

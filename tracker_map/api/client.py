"""aiohttp client for the tracker server REST API.

Every request carries the static ``X-API-Key`` header. Non-2xx responses
raise :class:`TransportError` (or :class:`AuthorizationError` for 401) so
callers decide whether a failure is logged or shown to the user.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from typing import Any, Optional

import aiohttp

from tracker_map.core.logging_utils import get_module_logger

from .errors import AuthorizationError, MissingCredentialError, TransportError

logger = get_module_logger("TrackerApiClient")

API_KEY_HEADER = "X-API-Key"


def _isoformat(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).isoformat().replace("+00:00", "Z")


class TrackerApiClient:
    """Thin async wrapper over the server's tracker endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        *,
        timeout_s: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.api_key = api_key or ""
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "TrackerApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    # ------------------------------------------------------------------
    # Endpoints

    async def whoami(self) -> Any:
        """Validate the API key. Raises AuthorizationError on 401."""
        return await self._get("whoami")

    async def fetch_trackers(self) -> list[dict[str, Any]]:
        """Return the live snapshot of every tracker visible to this key."""
        return _as_list(await self._get("trackers"))

    async def fetch_locations(
        self,
        tracker_id: str,
        *,
        limit: Optional[int] = None,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
    ) -> list[dict[str, Any]]:
        """Return a tracker's location history, oldest first.

        ``start``/``end`` select an inclusive time range and take precedence
        over ``limit``, matching the server's query handling.
        """
        params: dict[str, str] = {}
        if start is not None or end is not None:
            if start is not None:
                params["start"] = _isoformat(start)
            if end is not None:
                params["end"] = _isoformat(end)
        elif limit is not None:
            params["limit"] = str(int(limit))
        return _as_list(await self._get(f"trackers/{tracker_id}/locations", params=params))

    # ------------------------------------------------------------------
    # Internal helpers

    async def _get(self, path: str, *, params: Optional[dict[str, str]] = None) -> Any:
        if not self.api_key:
            raise MissingCredentialError("No API key configured")

        headers = {
            API_KEY_HEADER: self.api_key,
            "Content-Type": "application/json",
        }
        url = self.base_url + path
        logger.debug("GET %s params=%s", path, params or {})
        session = self._get_session()
        try:
            async with session.get(url, headers=headers, params=params) as resp:
                if resp.status == 401:
                    text = await resp.text()
                    raise AuthorizationError(
                        f"GET {path} failed: 401 {text}".strip(), status=401, body=text
                    )
                if resp.status >= 400:
                    text = await resp.text()
                    raise TransportError(
                        f"GET {path} failed: {resp.status} {text}".strip(),
                        status=resp.status,
                        body=text,
                    )
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"GET {path} failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"GET {path} returned invalid JSON: {exc}") from exc


def _as_list(payload: Any) -> list[dict[str, Any]]:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise TransportError(f"Expected a JSON array, got {type(payload).__name__}")
    return [item for item in payload if isinstance(item, dict)]


__all__ = ["API_KEY_HEADER", "TrackerApiClient"]

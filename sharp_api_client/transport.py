import asyncio
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import aiohttp
from loguru import logger
from pydantic import BaseModel

from sharp_api_client.exceptions import TransportFailure

DEFAULT_USER_AGENT = "SharpAPIPythonAgent/1.0.0"


class TransportResponse(BaseModel):
    status: int
    headers: Dict[str, str]
    body: bytes

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup"""
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None


class Transport:
    """Sends single HTTP requests to the service with the fixed header set.

    Used inside ``async with`` it keeps one ``aiohttp.ClientSession`` open;
    otherwise every request opens and closes its own session.
    """

    def __init__(
        self,
        api_key: str,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key
        self.user_agent = user_agent
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.logger = logger
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

    async def __aenter__(self) -> "Transport":
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _build_form(self, data: Mapping[str, Any], file_path: str) -> aiohttp.FormData:
        path = Path(file_path)
        form = aiohttp.FormData()
        for key, value in data.items():
            form.add_field(key, str(value))
        form.add_field("file", path.read_bytes(), filename=path.name)
        return form

    async def send(
        self,
        method: str,
        url: str,
        data: Optional[Mapping[str, Any]] = None,
        file_path: Optional[str] = None,
    ) -> TransportResponse:
        """Issues one request and returns the raw response; no retries"""
        method = method.upper()
        kwargs: Dict[str, Any] = {"headers": self.headers}
        if method == "POST":
            if file_path:
                kwargs["data"] = self._build_form(data or {}, file_path)
            else:
                kwargs["json"] = dict(data or {})

        if self._session is not None and not self._session.closed:
            return await self._request(self._session, method, url, kwargs)
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            return await self._request(session, method, url, kwargs)

    async def _request(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        kwargs: Dict[str, Any],
    ) -> TransportResponse:
        try:
            async with session.request(method, url, **kwargs) as response:
                response.raise_for_status()
                body = await response.read()
                return TransportResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    body=body,
                )
        except aiohttp.ClientResponseError as e:
            self.logger.error(f"HTTP error {e.status} at {url}: {e.message}")
            raise TransportFailure(
                f"{method} {url} failed with HTTP {e.status}: {e.message}",
                status=e.status,
            ) from e
        except aiohttp.ClientError as e:
            self.logger.error(f"Request to {url} failed: {e}")
            raise TransportFailure(f"{method} {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            self.logger.error(f"Request to {url} timed out")
            raise TransportFailure(f"{method} {url} timed out") from e

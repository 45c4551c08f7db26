import json
from typing import Any, Mapping, Optional

from loguru import logger

from sharp_api_client.exceptions import MalformedResponse
from sharp_api_client.transport import Transport, TransportResponse

STATUS_URL_FIELD = "status_url"


def decode_json(response: TransportResponse) -> Any:
    try:
        return json.loads(response.body)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedResponse(f"Response body is not valid JSON: {e}") from e


class JobSubmitter:
    def __init__(self, transport: Transport, base_url: str):
        self.transport = transport
        self.base_url = base_url.rstrip("/")
        self.logger = logger

    async def submit(
        self,
        path: str,
        data: Optional[Mapping[str, Any]] = None,
        file_path: Optional[str] = None,
    ) -> str:
        """Posts a job exactly once and returns the URL to poll for its status"""
        url = f"{self.base_url}/{path.lstrip('/')}"
        self.logger.debug(f"Submitting job to {url}")
        response = await self.transport.send("POST", url, data=data, file_path=file_path)

        body = decode_json(response)
        status_url = body.get(STATUS_URL_FIELD) if isinstance(body, dict) else None
        if not isinstance(status_url, str) or not status_url:
            self.logger.error(f"No {STATUS_URL_FIELD} in submission response from {url}")
            raise MalformedResponse(
                f"Submission response from {url} has no {STATUS_URL_FIELD}"
            )
        return status_url

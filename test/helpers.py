import json
from typing import Any, List, Optional, Union

from sharp_api_client.transport import TransportResponse

STATUS_URL = "https://sharpapi.test/api/v1/jobs/123"


def status_response(
    status: str,
    result: Any = None,
    retry_after: Optional[str] = None,
    job_id: str = "123",
    job_type: str = "translate",
) -> TransportResponse:
    attributes = {"type": job_type, "status": status}
    if result is not None:
        attributes["result"] = result
    headers = {"Content-Type": "application/json"}
    if retry_after is not None:
        headers["Retry-After"] = retry_after
    body = {"data": {"id": job_id, "type": "api_job_result", "attributes": attributes}}
    return TransportResponse(status=200, headers=headers, body=json.dumps(body).encode())


class FakeTransport:
    """Replays scripted responses; the last one repeats once the script runs out"""

    def __init__(self, responses: List[Union[TransportResponse, Exception]]):
        self.responses = list(responses)
        self.calls = []

    async def send(self, method, url, data=None, file_path=None):
        self.calls.append((method, url, data, file_path))
        index = min(len(self.calls), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


class RecordingSleep:
    def __init__(self):
        self.delays: List[int] = []

    async def __call__(self, delay, cancel_event=None):
        self.delays.append(delay)

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Tuple

from loguru import logger

from sharp_api_client.exceptions import Cancelled, MalformedResponse
from sharp_api_client.models import (
    Job,
    StatusPayload,
    StatusPollingConfig,
    StatusResponse,
)
from sharp_api_client.submitter import decode_json
from sharp_api_client.transport import Transport, TransportResponse

SleepFunc = Callable[[int, Optional[asyncio.Event]], Awaitable[None]]


async def wait_or_cancel(delay: int, cancel_event: Optional[asyncio.Event] = None) -> None:
    """Sleeps for ``delay`` seconds, raising Cancelled as soon as ``cancel_event`` is set"""
    if cancel_event is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise Cancelled(f"Polling cancelled during a {delay}s wait")


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Returns the Retry-After value in seconds, or None when absent, unparsable or not positive"""
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        return None
    return seconds if seconds > 0 else None


class JobPoller:
    def __init__(
        self,
        transport: Transport,
        config: Optional[StatusPollingConfig] = None,
        on_status_change: Optional[Callable[[StatusResponse], Any]] = None,
        sleep: SleepFunc = wait_or_cancel,
    ):
        self.transport = transport
        self.config = config or StatusPollingConfig()
        self.on_status_change = on_status_change
        self.sleep = sleep
        self.logger = logger

    async def _get_status_once(
        self, status_url: str
    ) -> Tuple[StatusPayload, dict, TransportResponse]:
        """Fetches and decodes the status of a job from the server"""
        response = await self.transport.send("GET", status_url)
        try:
            raw = decode_json(response)
            payload = StatusPayload.parse(raw)
        except MalformedResponse as e:
            self.logger.error(f"Malformed status response from {status_url}: {e}")
            raise
        return payload, raw, response

    def _calculate_delay(
        self, response: TransportResponse, config: StatusPollingConfig
    ) -> int:
        """Picks the wait before the next check: forced interval, then Retry-After, then the configured interval"""
        if config.use_custom_interval:
            return config.polling_interval
        retry_after = parse_retry_after(response.header("Retry-After"))
        return retry_after if retry_after is not None else config.polling_interval

    async def _handle_status_change(
        self, status_response: StatusResponse, last_status: Optional[str]
    ) -> None:
        """Invoke the status change callback if the status has changed"""
        if last_status != status_response.status and self.on_status_change is not None:
            self.logger.debug(f"Job status changed to {status_response.status}")
            outcome = self.on_status_change(status_response)
            if inspect.isawaitable(outcome):
                await outcome

    async def _wait_before_retry(
        self, delay: int, cancel_event: Optional[asyncio.Event]
    ) -> None:
        self.logger.debug(f"Job still pending, waiting {delay}s before next check")
        await self.sleep(delay, cancel_event)

    async def await_result(
        self,
        status_url: str,
        config: Optional[StatusPollingConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Job:
        """Poll the status URL until the job finishes or the wait budget runs out.

        On budget exhaustion the last (pending) snapshot is returned rather than
        raised; check ``Job.is_finished``.
        """
        config = config or self.config
        elapsed = 0
        last_status: Optional[str] = None

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise Cancelled(f"Polling of {status_url} cancelled")

            payload, raw, response = await self._get_status_once(status_url)

            await self._handle_status_change(
                StatusResponse(status=payload.status, raw_response=raw, elapsed_wait=elapsed),
                last_status,
            )
            last_status = payload.status

            if payload.is_finished:
                self.logger.info(f"Job {payload.data.id} finished with status {payload.status}")
                return Job.from_payload(payload)

            delay = self._calculate_delay(response, config)
            elapsed += delay
            if elapsed >= config.polling_wait:
                self.logger.warning(
                    f"Job {payload.data.id} still {payload.status} after waiting "
                    f"{elapsed}s of {config.polling_wait}s, giving up"
                )
                return Job.from_payload(payload)

            await self._wait_before_retry(delay, cancel_event)

import asyncio

import pytest

from helpers import STATUS_URL, FakeTransport, status_response
from sharp_api_client.exceptions import Cancelled, MalformedResponse, TransportFailure
from sharp_api_client.models import StatusPollingConfig
from sharp_api_client.polling import JobPoller, parse_retry_after
from sharp_api_client.transport import TransportResponse


def make_poller(transport, sleep, **config) -> JobPoller:
    return JobPoller(transport, config=StatusPollingConfig(**config), sleep=sleep)


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", ["success", "failed"])
async def test_returns_on_first_terminal_status(terminal, recording_sleep):
    transport = FakeTransport([status_response(terminal, result={"detail": "x"})])
    poller = make_poller(transport, recording_sleep)

    job = await poller.await_result(STATUS_URL)

    assert job.status == terminal
    assert job.result == {"detail": "x"}
    assert job.is_finished
    assert len(transport.calls) == 1
    assert transport.calls[0][:2] == ("GET", STATUS_URL)
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_endless_pending_stops_at_budget(recording_sleep):
    """Accumulated waits of 10s against a 35s budget: four checks, three sleeps"""
    transport = FakeTransport([status_response("pending")])
    poller = make_poller(transport, recording_sleep, polling_interval=10, polling_wait=35)

    job = await poller.await_result(STATUS_URL)

    assert job.status == "pending"
    assert job.result is None
    assert not job.is_finished
    assert len(transport.calls) == 4
    assert recording_sleep.delays == [10, 10, 10]


@pytest.mark.asyncio
async def test_unknown_status_is_treated_as_pending(recording_sleep):
    transport = FakeTransport(
        [status_response("queued"), status_response("success", result="done")]
    )
    poller = make_poller(transport, recording_sleep, polling_interval=3)

    job = await poller.await_result(STATUS_URL)

    assert job.status == "success"
    assert recording_sleep.delays == [3]


@pytest.mark.asyncio
async def test_custom_interval_overrides_retry_after(recording_sleep):
    transport = FakeTransport(
        [
            status_response("pending", retry_after="2"),
            status_response("pending", retry_after="60"),
            status_response("success", result="ok"),
        ]
    )
    poller = make_poller(
        transport, recording_sleep, polling_interval=7, use_custom_interval=True
    )

    await poller.await_result(STATUS_URL)

    assert recording_sleep.delays == [7, 7]


@pytest.mark.asyncio
async def test_retry_after_used_when_not_overridden(recording_sleep):
    transport = FakeTransport(
        [
            status_response("pending", retry_after="2"),
            status_response("pending", retry_after="4"),
            status_response("success", result="ok"),
        ]
    )
    poller = make_poller(transport, recording_sleep, polling_interval=10)

    await poller.await_result(STATUS_URL)

    assert recording_sleep.delays == [2, 4]


@pytest.mark.asyncio
@pytest.mark.parametrize("retry_after", [None, "0", "-5", "soon", ""])
async def test_missing_or_bad_retry_after_falls_back_to_interval(retry_after, recording_sleep):
    transport = FakeTransport(
        [
            status_response("pending", retry_after=retry_after),
            status_response("success", result="ok"),
        ]
    )
    poller = make_poller(transport, recording_sleep, polling_interval=10)

    await poller.await_result(STATUS_URL)

    assert recording_sleep.delays == [10]


@pytest.mark.asyncio
@pytest.mark.parametrize("polling_wait", [0, -1, 4])
async def test_small_budget_means_single_check_without_sleep(polling_wait, recording_sleep):
    transport = FakeTransport([status_response("pending")])
    poller = make_poller(transport, recording_sleep, polling_interval=5, polling_wait=polling_wait)

    job = await poller.await_result(STATUS_URL)

    assert job.status == "pending"
    assert len(transport.calls) == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_malformed_json_raises_without_retry(recording_sleep):
    broken = TransportResponse(status=200, headers={}, body=b"<html>")
    transport = FakeTransport([broken, status_response("success")])
    poller = make_poller(transport, recording_sleep)

    with pytest.raises(MalformedResponse):
        await poller.await_result(STATUS_URL)

    assert len(transport.calls) == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        b'{"data": {"attributes": {"type": "translate", "status": "pending"}}}',
        b'{"data": {"id": "1", "attributes": {"status": "pending"}}}',
        b'{"data": {"id": "1", "attributes": {"type": "translate"}}}',
        b'{"status": "pending"}',
        b"[]",
    ],
)
async def test_missing_required_field_raises(body, recording_sleep):
    transport = FakeTransport([TransportResponse(status=200, headers={}, body=body)])
    poller = make_poller(transport, recording_sleep)

    with pytest.raises(MalformedResponse):
        await poller.await_result(STATUS_URL)

    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_transport_failure_propagates_immediately(recording_sleep):
    transport = FakeTransport(
        [status_response("pending"), TransportFailure("boom", status=503)]
    )
    poller = make_poller(transport, recording_sleep, polling_interval=1)

    with pytest.raises(TransportFailure) as exc_info:
        await poller.await_result(STATUS_URL)

    assert exc_info.value.status == 503
    assert len(transport.calls) == 2
    assert recording_sleep.delays == [1]


@pytest.mark.asyncio
async def test_scenario_pending_then_translated(recording_sleep):
    transport = FakeTransport(
        [
            status_response("pending", retry_after="5"),
            status_response("success", result="Bonjour"),
        ]
    )
    poller = make_poller(transport, recording_sleep)

    job = await poller.await_result(STATUS_URL)

    assert recording_sleep.delays == [5]
    assert job.model_dump() == {
        "id": "123",
        "type": "translate",
        "status": "success",
        "result": "Bonjour",
    }


@pytest.mark.asyncio
async def test_scenario_budget_equal_to_interval(recording_sleep):
    transport = FakeTransport([status_response("pending")])
    poller = make_poller(transport, recording_sleep, polling_interval=10, polling_wait=10)

    job = await poller.await_result(STATUS_URL)

    assert len(transport.calls) == 1
    assert recording_sleep.delays == []
    assert job.status == "pending"
    assert job.result is None


@pytest.mark.asyncio
async def test_per_call_config_overrides_instance_config(recording_sleep):
    transport = FakeTransport([status_response("pending", retry_after="1")])
    poller = make_poller(transport, recording_sleep, polling_interval=10, polling_wait=180)

    await poller.await_result(
        STATUS_URL,
        config=StatusPollingConfig(polling_interval=2, use_custom_interval=True, polling_wait=6),
    )

    assert recording_sleep.delays == [2, 2]
    assert poller.config.polling_interval == 10


@pytest.mark.asyncio
async def test_status_change_callback_sees_each_transition(recording_sleep):
    seen = []

    async def on_change(status_response):
        seen.append((status_response.status, status_response.elapsed_wait))

    transport = FakeTransport(
        [
            status_response("pending", retry_after="2"),
            status_response("pending", retry_after="2"),
            status_response("success", result="ok"),
        ]
    )
    poller = JobPoller(transport, on_status_change=on_change, sleep=recording_sleep)

    await poller.await_result(STATUS_URL)

    assert seen == [("pending", 0), ("success", 4)]


@pytest.mark.asyncio
async def test_cancel_event_aborts_wait():
    transport = FakeTransport([status_response("pending")])
    poller = JobPoller(transport, config=StatusPollingConfig(polling_interval=30))
    cancel_event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.05, cancel_event.set)

    with pytest.raises(Cancelled):
        await asyncio.wait_for(
            poller.await_result(STATUS_URL, cancel_event=cancel_event), timeout=5
        )

    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_already_cancelled_makes_no_request(recording_sleep):
    transport = FakeTransport([status_response("pending")])
    poller = JobPoller(transport, sleep=recording_sleep)
    cancel_event = asyncio.Event()
    cancel_event.set()

    with pytest.raises(Cancelled):
        await poller.await_result(STATUS_URL, cancel_event=cancel_event)

    assert transport.calls == []


@pytest.mark.asyncio
async def test_task_cancellation_interrupts_sleep():
    transport = FakeTransport([status_response("pending")])
    poller = JobPoller(transport, config=StatusPollingConfig(polling_interval=30))

    task = asyncio.create_task(poller.await_result(STATUS_URL))
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert len(transport.calls) == 1


@pytest.mark.parametrize(
    "value, expected",
    [("5", 5), (" 12 ", 12), ("0", None), ("-3", None), ("abc", None), (None, None)],
)
def test_parse_retry_after(value, expected):
    assert parse_retry_after(value) == expected

import asyncio

from sharp_api_server import SharpApiServer

from sharp_api_client.client import SharpApiClient
from sharp_api_client.exceptions import SharpApiError
from sharp_api_client.models import StatusPollingConfig


async def status_changed(status_response):
    print(f"Status changed to: {status_response.status}")
    print(f"Waited so far: {status_response.elapsed_wait}s")


async def main():
    PORT = 8000
    server = SharpApiServer(api_key="demo-key", pending_checks=3, retry_after="2", failure_rate=0.1)
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    config = StatusPollingConfig(polling_interval=1, polling_wait=60)

    async with SharpApiClient(
        "demo-key",
        base_url=f"http://localhost:{PORT}/api/v1",
        config=config,
        on_status_change=status_changed,
    ) as client:
        try:
            status_url = await client.translate("Hello", "French")
            job = await client.await_result(status_url)
            if job.is_finished:
                print(f"Final status: {job.status}")
                print(f"Result: {job.result}")
            else:
                print(f"Gave up waiting, job {job.id} is still {job.status}")
        except SharpApiError as e:
            print(f"Error occurred: {e}")

    await server.stop()


if __name__ == "__main__":
    asyncio.run(main())

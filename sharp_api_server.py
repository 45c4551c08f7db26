import random
import uuid
from typing import Any, Dict, List, Optional

from aiohttp import web
from loguru import logger


class SharpApiServer:
    """In-process stand-in for the SharpAPI job endpoints"""

    def __init__(
        self,
        api_key: str = "test-api-key",
        pending_checks: int = 1,
        retry_after: Optional[str] = "1",
        failure_rate: float = 0.0,
        result: Any = "Bonjour",
        include_status_url: bool = True,
        malformed_status: bool = False,
    ):
        self.api_key = api_key
        self.pending_checks = pending_checks
        self.retry_after = retry_after
        self.failure_rate = failure_rate
        self.result = result
        self.include_status_url = include_status_url
        self.malformed_status = malformed_status
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.submissions: List[Dict[str, Any]] = []
        self.status_checks: List[str] = []
        self.runner: Optional[web.AppRunner] = None
        self.app = web.Application()
        self.app.router.add_post("/api/v1/{feature:.+}", self.handle_submit)
        self.app.router.add_get("/api/v1/jobs/{job_id}", self.handle_status)
        self.logger = logger

    def _authorized(self, request: web.Request) -> bool:
        return request.headers.get("Authorization") == f"Bearer {self.api_key}"

    async def _read_submission(self, request: web.Request) -> Dict[str, Any]:
        submission: Dict[str, Any] = {
            "feature": request.match_info["feature"],
            "headers": dict(request.headers),
        }
        if request.content_type == "multipart/form-data":
            form = await request.post()
            fields = {}
            for name, value in form.items():
                if isinstance(value, web.FileField):
                    submission["file"] = {
                        "field": name,
                        "filename": value.filename,
                        "content": value.file.read(),
                    }
                else:
                    fields[name] = value
            submission["fields"] = fields
        else:
            submission["json"] = await request.json()
        return submission

    async def handle_submit(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.json_response({"message": "Unauthenticated."}, status=401)

        submission = await self._read_submission(request)
        self.submissions.append(submission)

        job_id = str(uuid.uuid4())
        self.jobs[job_id] = {
            "type": submission["feature"].replace("/", "_"),
            "checks": 0,
        }
        self.logger.info(f"Accepted {submission['feature']} job {job_id}")

        if not self.include_status_url:
            return web.json_response({"message": "accepted"}, status=202)
        status_url = f"{request.scheme}://{request.host}/api/v1/jobs/{job_id}"
        return web.json_response({"status_url": status_url}, status=202)

    def _status_body(self, job_id: str, job_type: str, status: str, result: Any) -> dict:
        attributes = {"status": status, "type": job_type}
        if result is not None:
            attributes["result"] = result
        return {"data": {"id": job_id, "type": "api_job_result", "attributes": attributes}}

    async def handle_status(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.json_response({"message": "Unauthenticated."}, status=401)

        job_id = request.match_info["job_id"]
        job = self.jobs.get(job_id)
        if job is None:
            return web.json_response({"message": "Not found."}, status=404)

        self.status_checks.append(job_id)
        job["checks"] += 1

        if self.malformed_status:
            self.logger.info("Returning malformed status body")
            return web.Response(text="<html>oops</html>", content_type="text/html")

        if job["checks"] <= self.pending_checks:
            self.logger.info(f"Returning pending status (check {job['checks']})")
            headers = {"Retry-After": self.retry_after} if self.retry_after is not None else None
            return web.json_response(
                self._status_body(job_id, job["type"], "pending", None), headers=headers
            )

        if random.random() < self.failure_rate:
            self.logger.info("Returning failed status")
            return web.json_response(
                self._status_body(job_id, job["type"], "failed", {"error": "processing failed"})
            )

        self.logger.info("Returning success status")
        return web.json_response(self._status_body(job_id, job["type"], "success", self.result))

    async def start(self, port: int = 8080):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "localhost", port)
        await site.start()
        self.logger.info(f"Server started on port {port}")
        return site

    async def stop(self) -> None:
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None

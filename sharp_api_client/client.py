import asyncio
from typing import Any, Callable, Mapping, Optional

from loguru import logger

from sharp_api_client.exceptions import InvalidConfiguration
from sharp_api_client.models import (
    Job,
    JobDescriptionParameters,
    StatusPollingConfig,
    StatusResponse,
)
from sharp_api_client.polling import JobPoller, SleepFunc, wait_or_cancel
from sharp_api_client.settings import DEFAULT_BASE_URL, SharpApiSettings
from sharp_api_client.submitter import JobSubmitter
from sharp_api_client.transport import DEFAULT_USER_AGENT, Transport

DEFAULT_LANGUAGE = "English"


class SharpApiClient:
    """Dispatches AI jobs to SharpAPI and waits for their results.

    Every feature method submits one job and returns its status URL; pass it
    to ``await_result`` (or use ``run``) to get the finished ``Job``.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        config: Optional[StatusPollingConfig] = None,
        on_status_change: Optional[Callable[[StatusResponse], Any]] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        request_timeout: Optional[float] = None,
        sleep: SleepFunc = wait_or_cancel,
    ):
        if not api_key:
            raise InvalidConfiguration("API key is required.")
        self.base_url = base_url.rstrip("/")
        self.config = config or StatusPollingConfig()
        self.logger = logger
        self.transport = Transport(api_key, user_agent=user_agent, timeout=request_timeout)
        self.submitter = JobSubmitter(self.transport, self.base_url)
        self.poller = JobPoller(
            self.transport,
            config=self.config,
            on_status_change=on_status_change,
            sleep=sleep,
        )

    @classmethod
    def from_settings(
        cls, settings: Optional[SharpApiSettings] = None, **kwargs: Any
    ) -> "SharpApiClient":
        settings = settings or SharpApiSettings()
        return cls(
            settings.key,
            base_url=settings.base_url,
            config=settings.polling_config(),
            user_agent=settings.user_agent,
            request_timeout=settings.request_timeout,
            **kwargs,
        )

    async def __aenter__(self) -> "SharpApiClient":
        await self.transport.__aenter__()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    async def submit(
        self,
        path: str,
        data: Optional[Mapping[str, Any]] = None,
        file_path: Optional[str] = None,
    ) -> str:
        return await self.submitter.submit(path, data=data, file_path=file_path)

    async def await_result(
        self,
        status_url: str,
        config: Optional[StatusPollingConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Job:
        """Polls ``status_url`` until the job finishes; see ``JobPoller.await_result``"""
        return await self.poller.await_result(
            status_url, config=config, cancel_event=cancel_event
        )

    async def run(
        self,
        path: str,
        data: Optional[Mapping[str, Any]] = None,
        file_path: Optional[str] = None,
        config: Optional[StatusPollingConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Job:
        """Submits a job and waits for it in one call"""
        status_url = await self.submit(path, data=data, file_path=file_path)
        self.logger.debug(f"Job accepted, polling {status_url}")
        return await self.await_result(status_url, config=config, cancel_event=cancel_event)

    async def _submit_content(self, path: str, content: str, **fields: Any) -> str:
        return await self.submit(path, {"content": content, **fields})

    # HR

    async def parse_resume(self, file_path: str, language: str = DEFAULT_LANGUAGE) -> str:
        """Parses a resume file (PDF/DOC/DOCX/TXT/RTF) into structured data points"""
        return await self.submit("hr/parse_resume", {"language": language}, file_path=file_path)

    async def generate_job_description(self, parameters: JobDescriptionParameters) -> str:
        """Generates a job description: short description, requirements and responsibilities.

        Only ``parameters.name`` is required.
        """
        return await self.submit("hr/job_description", parameters.to_payload())

    async def related_skills(self, skill_name: str, language: str = DEFAULT_LANGUAGE) -> str:
        """Lists skills related to ``skill_name``, weighted 1.0-10.0"""
        return await self._submit_content("hr/related_skills", skill_name, language=language)

    async def related_job_positions(
        self, job_position_name: str, language: str = DEFAULT_LANGUAGE
    ) -> str:
        return await self._submit_content(
            "hr/related_job_positions", job_position_name, language=language
        )

    # E-commerce

    async def product_review_sentiment(self, review: str, language: str = DEFAULT_LANGUAGE) -> str:
        """Rates a product review as POSITIVE/NEGATIVE/NEUTRAL with a 0-100% score"""
        return await self._submit_content("ecommerce/review_sentiment", review, language=language)

    async def product_categories(self, product_name: str, language: str = DEFAULT_LANGUAGE) -> str:
        return await self._submit_content(
            "ecommerce/product_categories", product_name, language=language
        )

    async def generate_product_intro(self, product_data: str, language: str = DEFAULT_LANGUAGE) -> str:
        return await self._submit_content("ecommerce/product_intro", product_data, language=language)

    async def generate_thank_you_email(
        self, product_name: str, language: str = DEFAULT_LANGUAGE
    ) -> str:
        """Writes a post-purchase thank-you email body, without title, greeting or signature"""
        return await self._submit_content(
            "ecommerce/thank_you_email", product_name, language=language
        )

    # Content

    async def detect_phones(self, text: str) -> str:
        """Finds phone numbers in ``text`` and returns them with their E.164 form"""
        return await self._submit_content("content/detect_phones", text)

    async def detect_emails(self, text: str) -> str:
        return await self._submit_content("content/detect_emails", text)

    async def detect_spam(self, text: str) -> str:
        return await self._submit_content("content/detect_spam", text)

    async def summarize_text(self, text: str, language: str = DEFAULT_LANGUAGE) -> str:
        return await self._submit_content("content/summarize", text, language=language)

    async def translate(self, text: str, language: str) -> str:
        return await self._submit_content("content/translate", text, language=language)

    # SEO

    async def generate_seo_tags(self, text: str, language: str = DEFAULT_LANGUAGE) -> str:
        """Generates META tags for the given page content"""
        return await self._submit_content("seo/generate_tags", text, language=language)

    # Travel, tourism & hospitality

    async def travel_review_sentiment(self, text: str, language: str = DEFAULT_LANGUAGE) -> str:
        return await self._submit_content("tth/review_sentiment", text, language=language)

    async def tours_and_activities_product_categories(
        self,
        product_name: str,
        city: str = "",
        country: str = "",
        language: str = DEFAULT_LANGUAGE,
    ) -> str:
        return await self._submit_content(
            "tth/ta_product_categories",
            product_name,
            city=city,
            country=country,
            language=language,
        )

    async def hospitality_product_categories(
        self,
        product_name: str,
        city: str = "",
        country: str = "",
        language: str = DEFAULT_LANGUAGE,
    ) -> str:
        return await self._submit_content(
            "tth/hospitality_product_categories",
            product_name,
            city=city,
            country=country,
            language=language,
        )

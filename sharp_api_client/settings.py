from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sharp_api_client.models import StatusPollingConfig
from sharp_api_client.transport import DEFAULT_USER_AGENT

DEFAULT_BASE_URL = "https://sharpapi.com/api/v1"


class SharpApiSettings(BaseSettings):
    """Client settings read from SHARP_API_* environment variables or a .env file"""

    model_config = SettingsConfigDict(
        env_prefix="SHARP_API_", env_file=".env", extra="ignore"
    )

    key: str = ""
    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = 30.0

    polling_interval: int = Field(default=10, ge=1)
    use_custom_interval: bool = False
    polling_wait: int = 180

    def polling_config(self) -> StatusPollingConfig:
        return StatusPollingConfig(
            polling_interval=self.polling_interval,
            use_custom_interval=self.use_custom_interval,
            polling_wait=self.polling_wait,
        )

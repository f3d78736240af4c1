from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Quiz client settings; independent of the server's database settings."""

    model_config = SettingsConfigDict(
        env_prefix="TVC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    GRADING_API_URL: str = "http://127.0.0.1:8000/api/v1"
    GRADING_TIMEOUT_SECONDS: float = 15.0
    LOW_TIME_WARNING_SECONDS: int = 300
    WARNING_DISMISS_SECONDS: float = 5.0
    DEFAULT_TIMER_MINUTES: int = 180


client_settings = ClientSettings()

import os
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")

class Settings(BaseSettings):
    SECRET_KEY: str = "default-secret-key"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    # one of: openai, anthropic, aipipe
    LLM_PROVIDER: str = "openai"
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: Optional[str] = None
    ANTHROPIC_API_KEY: str = ""
    AIPIPE_API_KEY: str = ""
    AIPIPE_BASE_URL: str = "https://aipipe.org/openrouter/v1"

    GITHUB_TOKEN: str = ""
    GITHUB_USERNAME: str = ""
    GITHUB_API_URL: str = "https://api.github.com"
    DEFAULT_BRANCH: str = "main"

    CALLBACK_TIMEOUT: float = 30.0
    NOTIFY_LOG_PATH: str = "/tmp/notify.log"

    model_config = SettingsConfigDict(env_file=ENV_PATH, extra="ignore")

settings = Settings()

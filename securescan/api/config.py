import tempfile

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./securescan.db"

    # GitHub
    GITHUB_TOKEN: str = ""
    GITHUB_API_URL: str = "https://api.github.com"
    GIT_USER_NAME: str = "SecureScan Bot"
    GIT_USER_EMAIL: str = "securescan@users.noreply.github.com"

    # Working copies are cloned under this directory
    WORK_DIR: str = tempfile.gettempdir()

    # Timeouts (seconds)
    TOOL_TIMEOUT_SECONDS: int = 120
    CLONE_TIMEOUT_SECONDS: int = 300
    GIT_TIMEOUT_SECONDS: int = 60
    LLM_TIMEOUT_SECONDS: int = 120

    # AI Configuration
    LLM_MAX_TOKENS: int = 4096
    OLLAMA_BASE_URL: str = "http://localhost:11434"

    # Tool binaries
    TRIVY_BIN: str = "trivy"
    TRUFFLEHOG_BIN: str = "trufflehog"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()

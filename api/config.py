from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    db_path: str = "sqlite:///roadmap.db"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8090
    default_branch: str = Field(default="main", validation_alias="DEFAULT_BRANCH")
    github_token: str = Field(default="", validation_alias="GITHUB_TOKEN")
    read_only_checks_url: str = Field(default="", validation_alias="READ_ONLY_CHECKS_URL")
    # JSON object or "key: value" pairs
    read_only_checks_headers: str = Field(default="", validation_alias="READ_ONLY_CHECKS_HEADERS")
    check_timeout_seconds: float = Field(default=10.0, validation_alias="ROADMAP_CHECK_TIMEOUT_SECONDS")
    check_max_concurrency: int = Field(default=1, validation_alias="ROADMAP_CHECK_MAX_CONCURRENCY")
    user_agent: str = Field(default="roadmap-status-engine", validation_alias="ROADMAP_USER_AGENT")

    class Config:
        env_file = ".env"

settings = Settings()

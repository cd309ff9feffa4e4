from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter (checked when an audit starts, not at import)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "google/gemini-2.5-flash"
    extraction_model: str = ""  # optional override for the extraction call only

    # Research / extraction calls
    research_max_tokens: int = 8192
    extraction_max_tokens: int = 4096
    deeper_max_tokens: int = 2048
    reasoning_effort: str = "medium"  # low | medium | high
    web_search_max_results: int = 5

    # Rate-limit retry
    rate_limit_retry_delay_ms: int = 3000

    # App
    cors_origins: str = "http://localhost:5173"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def rate_limit_retry_delay_s(self) -> float:
        return max(self.rate_limit_retry_delay_ms, 0) / 1000


settings = Settings()

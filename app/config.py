from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o"
    openrouter_model: str = ""
    analysis_model: str = ""  # optional override for per-result extraction only
    llm_timeout_seconds: float = 60.0
    llm_max_tokens: int = 2048

    # Web search
    search_provider: str = "exa"  # exa | tavily
    exa_api_key: str = ""
    tavily_api_key: str = ""
    search_results_per_query: int = 5
    search_content_max_chars: int = 1000
    search_timeout_seconds: float = 45.0

    # Category modules + fan-out
    category_num_queries: int = 5
    category_num_results: int = 5
    category_min_relevance: float = 0.5
    category_max_parallel_requests: int = 8
    fanout_max_parallel: int = 4

    # Browser campaign
    browser_headless: bool = True
    browser_navigation_timeout_ms: int = 60000
    browser_extract_max_chars: int = 20000
    campaign_poll_interval_seconds: float = 0.5

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    searches_table: str = "searches"

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()

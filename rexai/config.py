from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "postgresql://postgres:postgres@db:5432/rexai"
    redis_url: str = "redis://redis:6379/0"

    # Text generation providers, tried in order
    llm_provider_order: list[str] = ["anthropic", "openai"]

    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    openai_api_key: str = ""
    openai_base_url: str | None = None
    openai_model: str = "gpt-4o"

    # Provider API timeout settings (seconds)
    llm_timeout: int = 120
    llm_connect_timeout: int = 10
    llm_max_tokens: int = 4096

    # AI cost tracking (per 1K tokens in cents)
    anthropic_input_cost_per_1k: float = 0.3  # $0.003 per 1K input tokens
    anthropic_output_cost_per_1k: float = 1.5  # $0.015 per 1K output tokens
    openai_input_cost_per_1k: float = 0.25
    openai_output_cost_per_1k: float = 1.0

    # LlamaParse document parsing
    llama_cloud_api_key: str = ""
    llama_parse_base_url: str = "https://api.cloud.llamaindex.ai/api/parsing"
    llama_parse_poll_interval: float = 2.0
    llama_parse_max_wait: int = 300

    # RxNorm drug lookups
    rxnorm_base_url: str = "https://rxnav.nlm.nih.gov/REST"
    rxnorm_timeout: int = 15
    rxnorm_max_concurrency: int = 4

    # Analysis pipeline tunables
    analysis_min_existing_text_length: int = 50
    analysis_max_document_chars: int = 8000
    analysis_stage_timeout: int = 180  # Per external call, seconds
    analysis_max_recommendations: int = 6
    analysis_max_safety_insights: int = 5

    model_config = SettingsConfigDict(env_file=".env")


settings = Settings()

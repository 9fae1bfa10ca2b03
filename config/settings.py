from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    OPENAI_API_KEY: Optional[str] = ""
    ANTHROPIC_API_KEY: Optional[str] = ""
    GEMINI_API_KEY: Optional[str] = ""
    GROK_API_KEY: Optional[str] = ""
    OPEN_ROUTER_API_KEY: Optional[str] = ""
    CEREBRAS_API_KEY: Optional[str] = ""

    # Application Settings
    APP_NAME: str = "Brand Recommendation Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Generation Backend Configuration
    # Ordered fallback chain used after the brand's preferred backend (if any)
    # Options: "openai", "claude", "gemini", "llama", "grok", "deepseek", "openrouter", "cerebras", "ollama"
    RECOMMENDATION_BACKEND_CHAIN: list = ["openrouter", "cerebras"]

    # Model Settings
    CHATGPT_MODEL: str = "gpt-4o-mini"
    CLAUDE_MODEL: str = "claude-3-5-haiku-20241022"
    GEMINI_MODEL: str = "gemini-2.5-flash-lite"
    GROQ_LLAMA_MODEL: str = "llama-3.1-8b-instant"
    OPENROUTER_GROK_MODEL: str = "x-ai/grok-4.1-fast"
    OPENROUTER_DEEPSEEK_MODEL: str = "deepseek/deepseek-chat-v3-0324:free"
    OPENROUTER_RECOMMENDATION_MODEL: str = "openai/gpt-4o-mini"
    CEREBRAS_MODEL: str = "qwen-3-235b-a22b-instruct-2507"
    CEREBRAS_BASE_URL: str = "https://api.cerebras.ai/v1"
    OLLAMA_MODEL: str = "llama3.1"
    OLLAMA_BASE_URL: str = "http://localhost:11434/v1"

    # Generation request budgets
    LIGHT_REQUEST_TIMEOUT: int = 90  # seconds, personalization calls
    HEAVY_REQUEST_TIMEOUT: int = 180  # seconds, full recommendation generation
    RECOMMENDATION_MAX_TOKENS: int = 16000
    PERSONALIZATION_MAX_TOKENS: int = 4000
    RECOMMENDATION_TEMPERATURE: float = 0.5

    # Maturity thresholds
    COLD_START_MIN_CITATIONS: int = 50
    COLD_START_MIN_DOMAINS: int = 5
    COLD_START_MIN_VISIBILITY: float = 5
    COLD_START_MIN_SOA: float = 5
    LOW_DATA_MIN_CITATIONS: int = 100
    LOW_DATA_MIN_VISIBILITY: float = 15

    # Telemetry aggregation
    TELEMETRY_WINDOW_DAYS: int = 30
    TELEMETRY_BATCH_SIZE: int = 5  # Max concurrent competitor lookups
    MAX_COMPETITORS: int = 10
    MAX_TOP_SOURCES: int = 10
    DOMAIN_AUDIT_MAX_AGE_DAYS: int = 90
    MAX_DOMAIN_AUDIT_RECOMMENDATIONS: int = 8

    # Quality gate
    MIN_ACTION_LENGTH: int = 15
    MIN_CONTENT_LENGTH: int = 600

    # Feature flags
    RECS_COLD_START_MODE: bool = True
    RECS_COLD_START_PERSONALIZE: bool = True
    RECS_QUALITY_CONTRACT: bool = True
    RECS_DETERMINISTIC_RANKING: bool = True
    RECS_ALLOW_TEXT_MENTIONS: bool = True  # Competitor names allowed in rationale text

    # Telemetry store backend: "memory" or "redis"
    TELEMETRY_STORE_BACKEND: str = "memory"

    # Redis Settings
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_CACHE_TTL: int = 3600  # 1 hour cache TTL
    REDIS_MAX_CONNECTIONS: int = 10
    REDIS_KEY_PREFIX: str = "recs"
    CACHE_GENERATION_SUMMARY: bool = False  # Cache latest generation summary in Redis

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

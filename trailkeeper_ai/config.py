"""
Trip Planning Orchestrator Configuration
Loads settings from environment variables
"""

import os
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def is_usable_api_key(key: Optional[str]) -> bool:
    """Placeholder keys from sample .env files do not count"""
    return bool(key) and not key.startswith("sk-your")


class Settings:
    """Application settings loaded from environment"""

    # OpenAI Configuration
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_BASE_URL: Optional[str] = os.getenv("OPENAI_BASE_URL") or None
    MODEL_VERSION: str = os.getenv("MODEL_VERSION", "trailkeeper-1.0")

    # Completion call envelope
    LLM_MAX_OUTPUT_TOKENS: int = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "2048"))
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    LLM_REQUEST_TIMEOUT: float = float(os.getenv("LLM_REQUEST_TIMEOUT", "30"))
    LLM_MAX_ATTEMPTS: int = int(os.getenv("LLM_MAX_ATTEMPTS", "3"))
    LLM_BACKOFF_BASE: float = float(os.getenv("LLM_BACKOFF_BASE", "2"))
    LLM_BACKOFF_MAX: float = float(os.getenv("LLM_BACKOFF_MAX", "8"))
    LLM_DEADLINE: float = float(os.getenv("LLM_DEADLINE", "45"))
    LIVE_CONFIDENCE: float = 0.8
    FALLBACK_CONFIDENCE: float = 0.85

    # Rate limiting (free tier: 60 requests per minute)
    RATE_LIMIT_REQUESTS: int = int(os.getenv("RATE_LIMIT_REQUESTS", "60"))
    RATE_LIMIT_WINDOW: float = float(os.getenv("RATE_LIMIT_WINDOW", "60"))
    QUOTA_COOLDOWN: float = float(os.getenv("QUOTA_COOLDOWN", "60"))

    # Conversation
    RESPONSE_LANGUAGE: str = os.getenv("RESPONSE_LANGUAGE", "German")
    DEFAULT_HOME_BASE: str = os.getenv("DEFAULT_HOME_BASE", "Deutschland")
    HISTORY_MAX_TURNS: int = int(os.getenv("HISTORY_MAX_TURNS", "8"))
    HISTORY_AI_EXCERPT: int = 200
    SIMILAR_EXCERPT: int = 100
    SIMILAR_EXCERPTS_IN_PROMPT: int = 2
    SIMILAR_QUALITY_FLOOR: float = 0.7

    # Redis Configuration
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_KEY_PREFIX: str = os.getenv("REDIS_KEY_PREFIX", "trailkeeper:")
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "redis")

    # Interaction store bounds
    INTERACTION_CAPACITY: int = int(os.getenv("INTERACTION_CAPACITY", "1000"))
    TRAINING_PERSIST_LIMIT: int = int(os.getenv("TRAINING_PERSIST_LIMIT", "500"))
    FEEDBACK_PERSIST_LIMIT: int = int(os.getenv("FEEDBACK_PERSIST_LIMIT", "200"))
    ROUTE_FEEDBACK_PERSIST_LIMIT: int = int(os.getenv("ROUTE_FEEDBACK_PERSIST_LIMIT", "100"))

    # Session registry bounds
    SESSION_IDLE_TTL: float = float(os.getenv("SESSION_IDLE_TTL", "3600"))
    SESSION_MAX: int = int(os.getenv("SESSION_MAX", "10000"))

    # Similarity retrieval
    PREFERENCE_SIMILARITY_THRESHOLD: float = float(os.getenv("PREFERENCE_SIMILARITY_THRESHOLD", "0.6"))
    CONTEXT_SIMILARITY_THRESHOLD: float = float(os.getenv("CONTEXT_SIMILARITY_THRESHOLD", "0.5"))
    SIMILAR_TOP_K: int = int(os.getenv("SIMILAR_TOP_K", "5"))

    # Pattern weights
    WEIGHT_MIN: float = float(os.getenv("WEIGHT_MIN", "0.3"))
    WEIGHT_MAX: float = float(os.getenv("WEIGHT_MAX", "2.0"))
    WEIGHT_DEFAULT: float = 1.0
    POSITIVE_WEIGHT_DELTA: float = float(os.getenv("POSITIVE_WEIGHT_DELTA", "0.05"))
    NEGATIVE_WEIGHT_DELTA: float = float(os.getenv("NEGATIVE_WEIGHT_DELTA", "0.1"))
    BATCH_WEIGHT_DELTA: float = float(os.getenv("BATCH_WEIGHT_DELTA", "0.1"))

    # Quality scores
    POSITIVE_QUALITY_DELTA: float = float(os.getenv("POSITIVE_QUALITY_DELTA", "0.1"))
    NEGATIVE_QUALITY_DELTA: float = float(os.getenv("NEGATIVE_QUALITY_DELTA", "0.2"))
    QUALITY_FLOOR: float = float(os.getenv("QUALITY_FLOOR", "0.1"))
    QUALITY_BLEND_ORIGINAL: float = 0.3
    QUALITY_BLEND_FEEDBACK: float = 0.7
    FEEDBACK_RECENCY_WINDOW: float = float(os.getenv("FEEDBACK_RECENCY_WINDOW", "300"))

    # Batch learning passes
    BATCH_MIN_INTERACTIONS: int = int(os.getenv("BATCH_MIN_INTERACTIONS", "10"))
    BATCH_RECENT_INTERACTIONS: int = int(os.getenv("BATCH_RECENT_INTERACTIONS", "50"))
    BATCH_HIGH_QUALITY: float = 0.8
    BATCH_LOW_QUALITY: float = 0.5
    BATCH_MIN_GROUP: int = int(os.getenv("BATCH_MIN_GROUP", "3"))
    ROUTE_BATCH_MIN_FEEDBACK: int = int(os.getenv("ROUTE_BATCH_MIN_FEEDBACK", "5"))
    ROUTE_BATCH_RECENT: int = int(os.getenv("ROUTE_BATCH_RECENT", "20"))
    ROUTE_ACCEPT_HIGH: float = 0.8
    ROUTE_ACCEPT_LOW: float = 0.3

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_ENV: str = os.getenv("API_ENV", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS Configuration
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def redis_url(self) -> str:
        """Get Redis connection URL"""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


# Global settings instance
settings = Settings()

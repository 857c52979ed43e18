"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration – values are read from `.env` or the environment."""

    # LLM (any OpenAI-compatible chat endpoint – Groq by default)
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_api_key: str = ""
    llm_model: str = "llama-3.3-70b-versatile"
    llm_max_tokens: int = 2048

    # Hosted embeddings (only used when INGEST_EMBEDDING_BACKEND=openai)
    embeddings_base_url: str = "https://api.openai.com/v1"
    embeddings_api_key: str = ""

    # HTTP server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()

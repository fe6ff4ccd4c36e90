from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # API Keys
    openai_api_key: str = ""

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # LLM Configuration
    openai_model: str = "gpt-4"
    openai_temperature: float = 0.7
    max_tokens: int = 500

    # Application Settings
    app_name: str = "Mortgage Pre-Qualification Assistant"
    app_version: str = "0.2.0"

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "json"

    # Feature Flags
    enable_rate_limiting: bool = True
    max_requests_per_minute: int = 60
    rate_limit_by_ip: bool = True

    # Session storage: "memory" or "database"
    session_backend: str = "memory"
    database_url: str = "sqlite:///./mortgage_prequal.db"

    # Merge priority for values re-extracted from the assistant reply:
    # "disabled", "user" (user input wins) or "assistant" (reply wins)
    ai_extraction_priority: str = "user"

    # Calculation defaults when the conversation did not collect them
    default_interest_rate: float = 0.045
    default_loan_term_years: int = 30

    # Verification / notification
    sms_default_country_code: str = "+1"
    verification_code_ttl_minutes: int = 10
    verified_retention_hours: int = 24
    results_from_email: str = "noreply@mortgage-app.com"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Create a global settings instance
settings = Settings()

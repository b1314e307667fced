"""Configuration management for SalesOps automations."""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Application configuration."""

    # Application Settings
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")

    # Persistence
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./salesops.db")

    # Celery broker / result backend
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # When enabled, dispatches are queued on Celery instead of running in the
    # API process (after the response has been sent).
    AUTOMATIONS_ASYNC: bool = os.getenv("AUTOMATIONS_ASYNC", "False").lower() == "true"

    # Outbound custom_webhook calls
    WEBHOOK_TIMEOUT_SECONDS: float = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))

    # Confirmation sweep (Celery beat)
    CONFIRMATION_SWEEP_SECONDS: int = int(os.getenv("CONFIRMATION_SWEEP_SECONDS", "60"))
    DEFAULT_OVERDUE_THRESHOLD_MINUTES: int = int(os.getenv("DEFAULT_OVERDUE_THRESHOLD_MINUTES", "30"))

    # Twilio Configuration (sms + voice)
    TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_CALLER_ID: str = os.getenv("TWILIO_CALLER_ID", "")
    TWILIO_TTS_VOICE: str = os.getenv("TWILIO_TTS_VOICE", "")
    TWILIO_TTS_LANGUAGE: str = os.getenv("TWILIO_TTS_LANGUAGE", "en-US")

    # Resend (email)
    RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "")
    EMAIL_FROM_ADDRESS: str = os.getenv("EMAIL_FROM_ADDRESS", "")

    # Security
    API_KEY: str = os.getenv("API_KEY", "")  # For API authentication

    @classmethod
    def has_twilio_config(cls) -> bool:
        """Check if Twilio configuration is complete."""
        return all([
            cls.TWILIO_ACCOUNT_SID,
            cls.TWILIO_AUTH_TOKEN,
            cls.TWILIO_CALLER_ID
        ])

    @classmethod
    def has_resend_config(cls) -> bool:
        """Check if Resend email delivery is configured."""
        return bool(cls.RESEND_API_KEY and cls.EMAIL_FROM_ADDRESS)


# Create a global config instance
config = Config()

from pydantic_settings import BaseSettings
from pydantic import EmailStr


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./study_planner.db"
    API_PREFIX: str = "/api/v1"
    TESTING: bool = False
    LOG_LEVEL: str = "INFO"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    CACHE_EXPIRE_SECONDS: int = 1800
    REDIS_KEY_PREFIX: str = "study_planner"
    MAIL_USERNAME: str = ""
    MAIL_PASSWORD: str = ""
    MAIL_FROM: EmailStr = "planner@example.com"
    MAIL_PORT: int = 465
    MAIL_SERVER: str = ""
    MAIL_FROM_NAME: str = "Study Planner"
    MAIL_SSL_TLS: bool = True
    MAIL_STARTTLS: bool = False
    USE_CREDENTIALS: bool = True
    VALIDATE_CERTS: bool = True
    MAIL_DEBUG: bool = False
    FRONTEND_URI: str = "http://localhost:3000"
    GROQ_API_KEY: str = ""
    GROQ_MODEL: str = "llama-3.3-70b-versatile"
    GROQ_TEMPERATURE: float = 0.6
    # Minimum fraction of completed tasks before a plan may be marked complete
    PLAN_COMPLETION_THRESHOLD: float = 0.8

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./sql_learning.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)
DB_RETRY_ATTEMPTS = int(os.getenv("DB_RETRY_ATTEMPTS", "3"))
DB_RETRY_BASE_DELAY_SECONDS = float(os.getenv("DB_RETRY_BASE_DELAY_SECONDS", "0.5"))

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:4200")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_API_URL = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/chat/completions")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "800"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))

SANDBOX_MAX_ROWS = int(os.getenv("SANDBOX_MAX_ROWS", "500"))
SANDBOX_RESULT_ROW_LIMIT = int(os.getenv("SANDBOX_RESULT_ROW_LIMIT", "10000"))
SANDBOX_TIMEOUT_SECONDS = float(os.getenv("SANDBOX_TIMEOUT_SECONDS", "5"))
SANDBOX_MEMORY_LIMIT = os.getenv("SANDBOX_MEMORY_LIMIT", "256MB")
SANDBOX_THREADS = int(os.getenv("SANDBOX_THREADS", "1"))

BOOTSTRAP_TEACHER_EMAIL = os.getenv("BOOTSTRAP_TEACHER_EMAIL", "")
BOOTSTRAP_TEACHER_PASSWORD = os.getenv("BOOTSTRAP_TEACHER_PASSWORD", "")
BOOTSTRAP_TEACHER_NAME = os.getenv("BOOTSTRAP_TEACHER_NAME", "Teacher")


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if DB_RETRY_ATTEMPTS < 1:
        raise RuntimeError("DB_RETRY_ATTEMPTS must be at least 1.")
    if SANDBOX_TIMEOUT_SECONDS <= 0:
        raise RuntimeError("SANDBOX_TIMEOUT_SECONDS must be greater than 0.")

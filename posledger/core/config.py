import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        value = default
    else:
        try:
            value = int(raw)
        except ValueError:
            value = default
    if min_value is not None:
        return max(min_value, value)
    return value


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name)
    try:
        value = Decimal(raw if raw is not None else default)
    except InvalidOperation:
        value = Decimal(default)
    if not value.is_finite() or value < 0:
        return Decimal(default)
    return value


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    database_echo: bool
    auto_create_schema: bool
    secret_key: str
    algorithm: str
    access_token_expire_minutes: int
    issuer: str
    cors_origins: tuple[str, ...]
    log_level: str
    sale_tax_rate: Decimal
    invoice_due_days: int
    estimate_number_start: int
    default_page_size: int
    max_page_size: int
    change_log_page_size: int


def load_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "POS Ledger API"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./posledger.db"),
        database_echo=_env_bool("DATABASE_ECHO", False),
        auto_create_schema=_env_bool("AUTO_CREATE_SCHEMA", True),
        secret_key=os.getenv("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION_32_CHAR_MIN_SECRET_KEY"),
        algorithm=os.getenv("ALGORITHM", "HS256"),
        access_token_expire_minutes=_env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 480, min_value=1),
        issuer=os.getenv("TOKEN_ISSUER", "posledger-api"),
        cors_origins=tuple(
            origin.strip().rstrip("/")
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        sale_tax_rate=_env_decimal("SALE_TAX_RATE", "0.07"),
        invoice_due_days=_env_int("INVOICE_DUE_DAYS", 30, min_value=0),
        estimate_number_start=_env_int("ESTIMATE_NUMBER_START", 1001, min_value=1),
        default_page_size=_env_int("DEFAULT_PAGE_SIZE", 20, min_value=1),
        max_page_size=_env_int("MAX_PAGE_SIZE", 100, min_value=1),
        change_log_page_size=_env_int("CHANGE_LOG_PAGE_SIZE", 100, min_value=1),
    )


settings = load_settings()

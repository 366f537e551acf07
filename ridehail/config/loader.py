# ridehail/config/loader.py
"""
Загрузчик конфигурации проекта.
Значения по умолчанию берутся из config/config.json.
Переменные окружения (и .env) переопределяют любое значение.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь без ключей-комментариев."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return {k: v for k, v in data.items() if not k.startswith("_comment_")}


# =============================================================================
# ЧТЕНИЕ ПЕРЕМЕННЫХ ОКРУЖЕНИЯ
# =============================================================================
# Нечитаемые значения молча заменяются значением по умолчанию.

def _env_str(key: str, default: str) -> str:
    value = os.getenv(key)
    return value if value else default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if not value:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "ridehail"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "colored"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_MAX_BYTES: int = 10485760


class LocationServiceSettings(BaseModel):
    """Настройки Location Service."""
    HOST: str = "0.0.0.0"
    PORT: int = 8086
    API_KEY: str = "default-matching-api-key"
    API_KEY_HEADER: str = "X-API-Key"
    IMPORT_ON_STARTUP: bool = False
    IMPORT_CSV_PATH: str = "Coordinates.csv"

    @property
    def address(self) -> str:
        return f"{self.HOST}:{self.PORT}"


class MatchingServiceSettings(BaseModel):
    """Настройки Matching Service и исходящего клиента."""
    HOST: str = "0.0.0.0"
    PORT: int = 8087
    JWT_SECRET: str = "changeme"
    JWT_ALGORITHM: str = "HS256"
    DRIVER_LOCATION_BASE_URL: str = "http://localhost:8086"
    DRIVER_LOCATION_API_KEY: str = ""
    REQUEST_TIMEOUT: float = 30.0
    BREAKER_MAX_REQUESTS: int = 3
    BREAKER_INTERVAL: float = 60.0
    BREAKER_TIMEOUT: float = 10.0
    BREAKER_FAILURE_THRESHOLD: int = 5


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL (PostGIS)."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "driver_location"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 10
    DB_MAX_POOL_SIZE: int = 100
    DB_COMMAND_TIMEOUT: int = 60
    DB_CONNECT_TIMEOUT: float = 10.0
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_ENABLED: bool = True
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "drivers"
    REDIS_MAX_CONNECTIONS: int = 10
    REDIS_TIMEOUT: float = 5.0

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class CacheTTLSettings(BaseModel):
    """TTL кэша (секунды)."""
    DRIVER_TTL: int = 60
    NEARBY_TTL: int = 60


class SearchSettings(BaseModel):
    """Настройки поиска водителей."""
    DEFAULT_SEARCH_LIMIT: int = 10
    MAX_SEARCH_LIMIT: int = 100
    DEFAULT_RADIUS: float = 2000.0
    MIN_RADIUS: float = 0.1
    MAX_RADIUS: float = 50000.0


class StoreTimeoutSettings(BaseModel):
    """Таймауты операций хранилища (секунды)."""
    WRITE_TIMEOUT: float = 5.0
    BATCH_TIMEOUT: float = 30.0
    SEARCH_TIMEOUT: float = 10.0


class ImporterSettings(BaseModel):
    """Настройки CSV импортёра."""
    CSV_PATH: str = "Coordinates.csv"
    API_URL: str = "http://localhost:8086/api/v1/drivers/batch"
    API_KEY: str = "changeme"
    BATCH_SIZE: int = 100
    NUM_WORKERS: int = 4
    REQUEST_TIMEOUT: float = 30.0


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    system: SystemSettings = Field(default_factory=SystemSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    location_service: LocationServiceSettings = Field(default_factory=LocationServiceSettings)
    matching_service: MatchingServiceSettings = Field(default_factory=MatchingServiceSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    cache_ttl: CacheTTLSettings = Field(default_factory=CacheTTLSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    store_timeouts: StoreTimeoutSettings = Field(default_factory=StoreTimeoutSettings)
    importer: ImporterSettings = Field(default_factory=ImporterSettings)

    def validate_required(self) -> None:
        """
        Проверяет обязательные параметры.
        Вызывается при старте сервиса: ошибка здесь фатальна.
        """
        if not self.database.DB_NAME:
            raise ValueError("database name is required")
        if not self.database.DB_HOST:
            raise ValueError("database host is required")
        if self.redis.REDIS_ENABLED and not self.redis.REDIS_HOST:
            raise ValueError("redis address is required when redis is enabled")
        if not self.location_service.API_KEY:
            raise ValueError("matching API key is required")
        if not self.matching_service.JWT_SECRET:
            raise ValueError("JWT secret is required")

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Каждое значение может быть переопределено переменной окружения.
        """
        data = load_config_json()

        return cls(
            system=SystemSettings(
                PROJECT_NAME=data.get("PROJECT_NAME", "ridehail"),
                VERSION=data.get("VERSION", "1.0.0"),
                DEBUG=_env_bool("DEBUG", data.get("DEBUG", False)),
                ENVIRONMENT=_env_str("ENVIRONMENT", data.get("ENVIRONMENT", "development")),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=_env_str("LOG_LEVEL", data.get("LOG_LEVEL", "INFO")),
                LOG_FORMAT=_env_str("LOG_FORMAT", data.get("LOG_FORMAT", "colored")),
                LOG_TO_FILE=_env_bool("LOG_TO_FILE", data.get("LOG_TO_FILE", False)),
                LOG_FILE_PATH=_env_str("LOG_FILE_PATH", data.get("LOG_FILE_PATH", "logs/app.log")),
                LOG_MAX_BYTES=_env_int("LOG_MAX_BYTES", data.get("LOG_MAX_BYTES", 10485760)),
            ),
            location_service=LocationServiceSettings(
                HOST=_env_str("HOST", data.get("LOCATION_SERVICE_HOST", "0.0.0.0")),
                PORT=_env_int("PORT", data.get("LOCATION_SERVICE_PORT", 8086)),
                API_KEY=_env_str("MATCHING_API_KEY", data.get("MATCHING_API_KEY", "default-matching-api-key")),
                API_KEY_HEADER=data.get("API_KEY_HEADER", "X-API-Key"),
                IMPORT_ON_STARTUP=_env_bool("IMPORT_ON_STARTUP", data.get("IMPORT_ON_STARTUP", False)),
                IMPORT_CSV_PATH=_env_str("IMPORT_CSV_PATH", data.get("IMPORT_CSV_PATH", "Coordinates.csv")),
            ),
            matching_service=MatchingServiceSettings(
                HOST=_env_str("HOST", data.get("MATCHING_SERVICE_HOST", "0.0.0.0")),
                PORT=_env_int("PORT", data.get("MATCHING_SERVICE_PORT", 8087)),
                JWT_SECRET=_env_str("JWT_SECRET", data.get("JWT_SECRET", "changeme")),
                JWT_ALGORITHM=_env_str("JWT_ALGORITHM", data.get("JWT_ALGORITHM", "HS256")),
                DRIVER_LOCATION_BASE_URL=_env_str(
                    "DRIVER_LOCATION_BASE_URL",
                    data.get("DRIVER_LOCATION_BASE_URL", "http://localhost:8086"),
                ),
                DRIVER_LOCATION_API_KEY=_env_str(
                    "DRIVER_LOCATION_API_KEY",
                    data.get("DRIVER_LOCATION_API_KEY", ""),
                ),
                REQUEST_TIMEOUT=_env_float("UPSTREAM_TIMEOUT", data.get("UPSTREAM_TIMEOUT", 30.0)),
                BREAKER_MAX_REQUESTS=_env_int("BREAKER_MAX_REQUESTS", data.get("BREAKER_MAX_REQUESTS", 3)),
                BREAKER_INTERVAL=_env_float("BREAKER_INTERVAL", data.get("BREAKER_INTERVAL", 60.0)),
                BREAKER_TIMEOUT=_env_float("BREAKER_TIMEOUT", data.get("BREAKER_TIMEOUT", 10.0)),
                BREAKER_FAILURE_THRESHOLD=_env_int(
                    "BREAKER_FAILURE_THRESHOLD",
                    data.get("BREAKER_FAILURE_THRESHOLD", 5),
                ),
            ),
            database=DatabaseSettings(
                DB_HOST=_env_str("DB_HOST", data.get("DB_HOST", "localhost")),
                DB_PORT=_env_int("DB_PORT", data.get("DB_PORT", 5432)),
                DB_NAME=_env_str("DB_NAME", data.get("DB_NAME", "driver_location")),
                DB_USER=_env_str("DB_USER", data.get("DB_USER", "postgres")),
                DB_PASSWORD=_env_str("DB_PASSWORD", data.get("DB_PASSWORD", "")),
                DB_MIN_POOL_SIZE=_env_int("DB_MIN_POOL_SIZE", data.get("DB_MIN_POOL_SIZE", 10)),
                DB_MAX_POOL_SIZE=_env_int("DB_MAX_POOL_SIZE", data.get("DB_MAX_POOL_SIZE", 100)),
                DB_COMMAND_TIMEOUT=_env_int("DB_COMMAND_TIMEOUT", data.get("DB_COMMAND_TIMEOUT", 60)),
                DB_CONNECT_TIMEOUT=_env_float("DB_CONNECT_TIMEOUT", data.get("DB_CONNECT_TIMEOUT", 10.0)),
                DB_RETRY_ATTEMPTS=_env_int("DB_RETRY_ATTEMPTS", data.get("DB_RETRY_ATTEMPTS", 3)),
                DB_RETRY_DELAY=_env_float("DB_RETRY_DELAY", data.get("DB_RETRY_DELAY", 1.0)),
            ),
            redis=RedisSettings(
                REDIS_ENABLED=_env_bool("REDIS_ENABLED", data.get("REDIS_ENABLED", True)),
                REDIS_HOST=_env_str("REDIS_HOST", data.get("REDIS_HOST", "localhost")),
                REDIS_PORT=_env_int("REDIS_PORT", data.get("REDIS_PORT", 6379)),
                REDIS_DB=_env_int("REDIS_DB", data.get("REDIS_DB", 0)),
                REDIS_PASSWORD=_env_str("REDIS_PASSWORD", data.get("REDIS_PASSWORD", "")),
                REDIS_NAMESPACE=_env_str("REDIS_NAMESPACE", data.get("REDIS_NAMESPACE", "drivers")),
                REDIS_MAX_CONNECTIONS=_env_int("REDIS_POOL_SIZE", data.get("REDIS_POOL_SIZE", 10)),
                REDIS_TIMEOUT=_env_float("REDIS_TIMEOUT", data.get("REDIS_TIMEOUT", 5.0)),
            ),
            cache_ttl=CacheTTLSettings(
                DRIVER_TTL=_env_int("DRIVER_CACHE_TTL", data.get("DRIVER_CACHE_TTL", 60)),
                NEARBY_TTL=_env_int("NEARBY_CACHE_TTL", data.get("NEARBY_CACHE_TTL", 60)),
            ),
            search=SearchSettings(
                DEFAULT_SEARCH_LIMIT=_env_int("DEFAULT_SEARCH_LIMIT", data.get("DEFAULT_SEARCH_LIMIT", 10)),
                MAX_SEARCH_LIMIT=_env_int("MAX_SEARCH_LIMIT", data.get("MAX_SEARCH_LIMIT", 100)),
                DEFAULT_RADIUS=_env_float("DEFAULT_RADIUS", data.get("DEFAULT_RADIUS", 2000.0)),
                MIN_RADIUS=_env_float("MIN_RADIUS", data.get("MIN_RADIUS", 0.1)),
                MAX_RADIUS=_env_float("MAX_RADIUS", data.get("MAX_RADIUS", 50000.0)),
            ),
            store_timeouts=StoreTimeoutSettings(
                WRITE_TIMEOUT=_env_float("STORE_WRITE_TIMEOUT", data.get("STORE_WRITE_TIMEOUT", 5.0)),
                BATCH_TIMEOUT=_env_float("STORE_BATCH_TIMEOUT", data.get("STORE_BATCH_TIMEOUT", 30.0)),
                SEARCH_TIMEOUT=_env_float("STORE_SEARCH_TIMEOUT", data.get("STORE_SEARCH_TIMEOUT", 10.0)),
            ),
            importer=ImporterSettings(
                CSV_PATH=_env_str("IMPORT_CSV_PATH", data.get("IMPORT_CSV_PATH", "Coordinates.csv")),
                API_URL=_env_str(
                    "IMPORT_API_URL",
                    data.get("IMPORT_API_URL", "http://localhost:8086/api/v1/drivers/batch"),
                ),
                API_KEY=_env_str("MATCHING_API_KEY", data.get("MATCHING_API_KEY", "changeme")),
                BATCH_SIZE=_env_int("IMPORT_BATCH_SIZE", data.get("IMPORT_BATCH_SIZE", 100)),
                NUM_WORKERS=_env_int("IMPORT_NUM_WORKERS", data.get("IMPORT_NUM_WORKERS", 4)),
                REQUEST_TIMEOUT=_env_float("IMPORT_REQUEST_TIMEOUT", data.get("IMPORT_REQUEST_TIMEOUT", 30.0)),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Перед чтением подгружает .env из корня проекта.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()

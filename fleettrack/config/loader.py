# fleettrack/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины — config/config.json.
Секреты и адреса хостов переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fleettrack.common.constants import BroadcastBackend, StorageBackend, VEHICLE_UPDATES_CHANNEL


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json(path: Path | None = None) -> dict[str, Any]:
    """Загружает config.json и возвращает словарь без ключей-комментариев."""
    config_path = path or get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return {k: v for k, v in data.items() if not k.startswith("_comment_")}


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "fleettrack"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"


class DeploymentSettings(BaseModel):
    """Адрес и порт сервиса трекинга."""
    TRACKING_HOST: str = "0.0.0.0"
    TRACKING_PORT: int = 3000


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "colored"  # colored | json
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/fleettrack.log"
    LOG_MAX_BYTES: int = 10485760

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_format(cls, v: str) -> str:
        """Допустимы только colored и json."""
        if v not in ("colored", "json"):
            raise ValueError(f"Неизвестный LOG_FORMAT: {v}")
        return v


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL (с расширением PostGIS)."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "fleettrack"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 2
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 30

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_MAX_CONNECTIONS: int = 20

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class TrackingSettings(BaseModel):
    """Настройки приёма позиций и real-time рассылки."""
    STORAGE_BACKEND: StorageBackend = StorageBackend.POSTGRES
    BROADCAST_BACKEND: BroadcastBackend = BroadcastBackend.LOCAL
    UPDATES_CHANNEL: str = VEHICLE_UPDATES_CHANNEL

    # Очередь на каждого подписчика: при переполнении выкидываем самое старое
    SUBSCRIBER_QUEUE_SIZE: int = Field(default=100, ge=1)
    SUBSCRIBER_SEND_TIMEOUT: float = Field(default=5.0, gt=0)
    RELAY_OUTBOX_SIZE: int = Field(default=1000, ge=1)

    NEARBY_DEFAULT_RADIUS_KM: float = Field(default=5.0, gt=0)
    NEARBY_MAX_RADIUS_KM: float = Field(default=100.0, gt=0)
    NEARBY_MAX_LIMIT: int = Field(default=100, ge=1)

    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """
        Раскладывает плоский словарь config.json по секциям.
        Переменные окружения имеют приоритет для хостов и режимов.
        """
        def pick(model: type[BaseModel], env_keys: tuple[str, ...] = ()) -> dict[str, Any]:
            values = {key: data[key] for key in model.model_fields if key in data}
            for key in env_keys:
                env_value = os.getenv(key)
                if env_value:
                    values[key] = env_value
            return values

        return cls(
            system=SystemSettings(**pick(SystemSettings, ("ENVIRONMENT",))),
            deployment=DeploymentSettings(**pick(DeploymentSettings, ("TRACKING_HOST", "TRACKING_PORT"))),
            logging=LoggingSettings(**pick(LoggingSettings, ("LOG_LEVEL", "LOG_FORMAT"))),
            database=DatabaseSettings(**pick(DatabaseSettings, ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER"))),
            redis=RedisSettings(**pick(RedisSettings, ("REDIS_HOST", "REDIS_PORT"))),
            tracking=TrackingSettings(**pick(TrackingSettings, ("STORAGE_BACKEND", "BROADCAST_BACKEND"))),
        )

    @classmethod
    def from_config_json(cls, path: Path | None = None) -> "Settings":
        """Создаёт объект Settings из config.json."""
        return cls.from_dict(load_config_json(path))


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Перед чтением config.json подгружает .env из корня проекта.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()

"""
Конфигурация релея. Использует pydantic-settings для загрузки переменных окружения.
"""

from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()  # Загрузить переменные из .env файла


class Settings(BaseSettings):
    """
    Конфигурация приложения. Все значения берутся из ENV или .env файла.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    HOST: str = Field(default="0.0.0.0", description="Адрес, на котором слушает сервер")
    PORT: int = Field(default=3000, description="Порт HTTP/WebSocket-сервера")
    LOG_LEVEL: str = Field(default="INFO", description="Уровень логирования")

    AUTH_ENABLED: bool = Field(
        default=True,
        description="True: нужен токен, сообщения ходят только между соединениями одного пользователя",
    )
    AUTH_BASE_URL: str = Field(
        default="https://qufeotwtcvdpdqngysuj.supabase.co",
        validation_alias=AliasChoices("AUTH_BASE_URL", "SUPABASE_URL"),
        description="Базовый URL сервиса ключей",
    )
    JWKS_PATH: str = Field(default="/auth/v1/.well-known/jwks.json", description="Путь к JWKS")
    JWKS_CACHE_TTL: float = Field(default=600.0, description="Время жизни ключа в кэше, сек")
    JWKS_FETCH_TIMEOUT: float = Field(default=5.0, description="Таймаут запроса JWKS, сек")
    AUTH_TIMEOUT: float = Field(default=5.0, description="Максимальное время проверки токена, сек")
    JWT_ALGORITHM: str = Field(default="ES256", description="Единственный допустимый алгоритм подписи")
    JWT_AUDIENCE: Optional[str] = Field(default=None, description="Ожидаемый aud; не задан - не проверяется")
    JWT_LEEWAY: float = Field(default=0.0, description="Допуск расхождения часов для exp/nbf, сек")

    WS_PATH: str = Field(default="/", description="Путь, на котором открывается WebSocket")
    STATIC_ROOT: str = Field(default="public", description="Каталог со статикой веб-клиента")
    AUTH_DIAG_LOG: str = Field(default="auth_diag.log", description="Файл диагностики авторизации")

    @property
    def jwks_url(self) -> str:
        return self.AUTH_BASE_URL.rstrip("/") + self.JWKS_PATH


settings = Settings()

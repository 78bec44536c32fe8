from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "users-api"
    APP_PORT: int = 3000
    APP_ENV: str = "development"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = 10.0
    AUTO_CREATE_SCHEMA: bool = True

    DB_DRIVER: str = "postgres"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_NAME: str = "users_db"
    DB_SSLMODE: str = "disable"
    DB_MAX_OPEN_CONNS: int = 25
    DB_MAX_IDLE_CONNS: int = 5
    DB_CONN_MAX_LIFETIME: int = 5  # minutes

    DATABASE_URL: str | None = None

    model_config = {"env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_database(self) -> "Settings":
        for name in ("DB_HOST", "DB_USER", "DB_NAME"):
            if not getattr(self, name):
                raise ValueError(f"{name} must not be empty")
        if self.DB_DRIVER not in ("postgres", "sqlite"):
            raise ValueError(f"Unsupported DB_DRIVER: {self.DB_DRIVER}")
        return self

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if self.DB_DRIVER == "sqlite":
            return f"sqlite+aiosqlite:///{self.DB_NAME}"
        url = (
            f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )
        if self.DB_SSLMODE != "disable":
            url += "?ssl=require"
        return url

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

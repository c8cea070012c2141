from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Interlinc Work API"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./interlinc.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    stripe_secret_key: str = ""
    default_currency: str = "gbp"

    # Client-side record of payments confirmed but not yet finalized
    pending_finalization_path: str = "./.interlinc/pending_finalizations.json"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key)


settings = Settings()

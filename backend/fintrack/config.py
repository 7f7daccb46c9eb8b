from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Fintrack API"
    database_url: str = ""
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    # Any level name the logging module accepts; JSON lines unless log_json is false.
    log_level: str = "INFO"
    log_json: bool = True

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()

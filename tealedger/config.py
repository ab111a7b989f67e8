from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str = "sqlite:///./tealedger.db"
    JWT_ISS: str = "tealedger"
    JWT_EXP_MIN: int = 12*60
    LOG_LEVEL: str = "INFO"
    # fallbacks when the app_settings table has no value for a key
    AUTO_ARREARS_DEFAULT: bool = False
    DEDUCTION_ROUNDING_DEFAULT: str = "half_up"
    INVOICE_STRATEGY_DEFAULT: str = "per_kg"
    INVOICE_BATCH_WORKERS: int = 4
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()

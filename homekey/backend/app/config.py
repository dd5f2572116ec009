from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    HOMEKEY_DB_URL: str = "sqlite+aiosqlite:///./homekey.db"
    LOG_LEVEL: str = "INFO"

    # --- Address store ---
    # Read-after-conflict rounds before find_or_create gives up.
    FIND_OR_CREATE_MAX_ATTEMPTS: int = 3

    NEARBY_DEFAULT_RADIUS_M: float = 1000.0
    NEARBY_MAX_LIMIT: int = 200

    # --- Embedded -> referenced migration ---
    MIGRATION_BATCH_SIZE: int = 100

    # Legacy embedded addresses were written with this country when none was given.
    LEGACY_DEFAULT_COUNTRY: str = "USA"

    # --- Property views ---
    # True: expose addressId next to the resolved address. False: address only.
    PROPERTY_VIEW_INCLUDE_ADDRESS_ID: bool = True


settings = Settings()

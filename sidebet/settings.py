from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SIDEBET_", env_file=".env", extra="ignore")

    # Pool pricing
    house_edge: Decimal = Decimal("0.05")  # withheld from every payout multiplier
    odds_floor: Decimal = Decimal("1.1")
    unbacked_odds: Decimal = Decimal("10.0")  # price shown for an outcome nobody has backed yet
    default_initial_odds: Decimal = Decimal("2.0")  # 50/50 until money arrives

    # Wallets
    starting_balance: Decimal = Decimal("100.00")

    # Storage
    # - "memory": process-local dict store (tests, demo)
    # - "sqlite": file-backed store at db_path (CLI)
    store: str = "sqlite"
    db_path: str = "sidebet.db"

    log_level: str = "INFO"


settings = Settings()

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "ChainTorque Sync API"
    DEBUG: bool = False

    # PostgreSQL
    DATABASE_URL: str = ""  # Full SQLAlchemy URL, overrides the POSTGRES_* parts
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "chaintorque"
    POSTGRES_PASSWORD: str = "chaintorque_secret"
    POSTGRES_DB: str = "chaintorque"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    CACHE_ENABLED: bool = True

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # Chain
    RPC_URL: str = ""  # Empty = chain unavailable, sync endpoints answer 503
    RPC_TIMEOUT_SEC: int = 15
    RPC_MAX_RETRIES: int = 2
    RPC_RATE_LIMIT: int = 20  # Requests per second
    CONTRACT_ADDRESS: str = ""
    CONTRACT_ABI_PATH: str = ""  # ABI list or hardhat artifact; empty = bundled ABI

    # Marketplace economics
    PLATFORM_FEE_BPS: int = 250  # 2.5%
    LISTING_PRICE_ETH: str = "0.00025"

    # Background drift sweep
    HEAL_SWEEP_INTERVAL_SEC: int = 0  # 0 disables the sweeper
    HEAL_SWEEP_BATCH: int = 100

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

from pathlib import Path

from pydantic_settings import BaseSettings

BUILT_IN_LICENSE_SERVER = "https://license.flixpilot.ovh"

class Settings(BaseSettings):
    # License Server Configuration
    LICENSE_SERVER: str = ""  # Overrides config.json and the built-in address
    LICENSE_API_TIMEOUT: float = 10.0

    # Local configuration file
    DATA_DIR: str = "./data"
    CONFIG_FILE: str = ""  # Defaults to DATA_DIR/config.json

    # Database (verification attempt log)
    DATABASE_URL: str = "sqlite:///./data/license.db"

    # Verification Cache
    VERIFY_INTERVAL_SECONDS: int = 3600
    BACKGROUND_REVALIDATION: bool = True
    REVALIDATION_CHECK_SECONDS: int = 300  # How often the background job looks at the cache

    # Service Info
    SERVICE_NAME: str = "FlixPilot License Client"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

    @property
    def config_path(self) -> Path:
        if self.CONFIG_FILE:
            return Path(self.CONFIG_FILE)
        return Path(self.DATA_DIR) / "config.json"

settings = Settings()

from typing import Dict, List

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentConfig(BaseModel):
    """A FireHydrant tenant the admin tool can sync to or from."""
    label: str
    api_key: SecretStr


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    PROJECT_NAME: str = "FireHydrant Environment Sync"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    FIREHYDRANT_API_URL: str = "https://api.firehydrant.io/v1"
    FIREHYDRANT_TIMEOUT_SECONDS: float = 30.0

    # JSON object keyed by environment reference, e.g.
    # {"FH_API_KEY__SANDBOX": {"label": "Sandbox", "api_key": "fhb-..."}}
    FH_ENVIRONMENTS: Dict[str, EnvironmentConfig] = Field(default_factory=dict)

    BACKUP_DIR: str = "backups"
    SYNC_MAX_CONCURRENCY: int = Field(default=4, ge=1)

    def credential_map(self) -> Dict[str, str]:
        """Environment reference -> API key, handed to the sync service at construction."""
        return {
            ref: env.api_key.get_secret_value()
            for ref, env in self.FH_ENVIRONMENTS.items()
        }

    def environment_labels(self) -> Dict[str, str]:
        return {ref: env.label for ref, env in self.FH_ENVIRONMENTS.items()}


settings = Settings()

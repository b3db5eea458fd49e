"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class CosmosConfig(BaseModel):
    """Cosmos DB account and transport settings."""

    endpoint: str = ""
    key: str = ""
    key_path: str = ""  # Alternative: path to a file holding the account key
    database: str = "smartoffice"
    connection_timeout_seconds: int = 60
    retry_total: int = 9
    retry_backoff_max_seconds: int = 30
    preferred_locations: list[str] = Field(default_factory=list)


class RepositoryConfig(BaseModel):
    """Defaults applied to every document repository."""

    throughput_units: int = 400
    bulk_import_procedure: str = "BulkImport"
    page_size: int | None = None  # None keeps the store's default page size
    resubmit_remainder: bool = True


class SchedulerConfig(BaseModel):
    """Cron expressions and timing tolerances for scheduled jobs."""

    timezone: str = "UTC"
    import_controls_cron: str = "0 10 * * *"
    past_due_tolerance_seconds: int = 60
    misfire_grace_seconds: int = 3600


class Settings(BaseSettings):
    """Main configuration class."""

    environment: str = "development"
    data_dir: Path = Path("data")
    log_level: str = "INFO"
    logfire_token: str = ""

    cosmos: CosmosConfig = Field(default_factory=CosmosConfig)
    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    def get_cosmos_key(self) -> str:
        """Get the Cosmos DB account key from either direct value or file path."""
        if self.cosmos.key:
            return self.cosmos.key

        if self.cosmos.key_path:
            key_path = Path(self.cosmos.key_path)
            if key_path.is_file():
                return key_path.read_text().strip()
            if key_path.exists():
                logger.warning(f"Cosmos key path is not a file: {key_path}")
            else:
                logger.warning(f"Cosmos key file not found: {key_path}")

        return ""

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.debug(f"Config file not found: {config_path}. Using defaults.")
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["cosmos", "repository", "scheduler"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name]

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings

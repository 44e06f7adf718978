import json
import os
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from pkg_collector.infrastructure.github_client import MAX_TARBALL_SIZE
from pkg_collector.infrastructure.registry_client import DEFAULT_REGISTRY_URL


class Settings(BaseModel):
    """Runtime configuration, read from the environment (and a .env file when present)."""
    model_config = ConfigDict(frozen=True)

    github_tokens: List[str] = Field(default_factory=list)
    ref_overrides: Dict[str, str] = Field(default_factory=dict)
    registry_url: str = DEFAULT_REGISTRY_URL
    max_tarball_size: int = Field(MAX_TARBALL_SIZE, gt=0)
    git_timeout: float = Field(300, gt=0)
    concurrency: int = Field(4, ge=1)
    max_retries: int = Field(3, ge=1)
    work_dir: Optional[str] = None
    log_level: str = "INFO"
    stats_interval: float = Field(15, gt=0)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        load_dotenv(env_file)

        values = {
            "github_tokens": [
                token.strip()
                for token in (os.getenv("GITHUB_TOKENS") or os.getenv("GITHUB_TOKEN") or "").split(",")
                if token.strip()
            ],
            "ref_overrides": json.loads(os.getenv("REF_OVERRIDES") or "{}"),
            "registry_url": os.getenv("REGISTRY_URL"),
            "max_tarball_size": os.getenv("MAX_TARBALL_SIZE"),
            "git_timeout": os.getenv("GIT_TIMEOUT"),
            "concurrency": os.getenv("COLLECT_CONCURRENCY"),
            "max_retries": os.getenv("MAX_RETRIES"),
            "work_dir": os.getenv("WORK_DIR"),
            "log_level": os.getenv("LOG_LEVEL"),
            "stats_interval": os.getenv("STATS_INTERVAL"),
        }
        # Unset variables keep the model defaults
        return cls(**{key: value for key, value in values.items() if value is not None})

from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field, ConfigDict


class Provider(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"


class Disposition(str, Enum):
    """Terminal state of a download attempt."""
    ACQUIRED = "acquired"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


class HostedRepository(BaseModel):
    """
    Immutable handle for a repository hosted on a supported provider.
    Produced by the host resolver and consumed by the downloaders.
    """
    model_config = ConfigDict(frozen=True)

    provider: Provider = Field(..., description="Hosting provider the URL was matched against")
    domain: str = Field(..., description="Provider domain, e.g. github.com")
    owner: str = Field(..., description="User or organization owning the repository")
    name: str = Field(..., description="Repository name without the .git suffix")

    @property
    def clone_url(self) -> str:
        return f"https://{self.domain}/{self.owner}/{self.name}.git"

    def tarball_url(self, ref: Optional[str] = None) -> str:
        # An empty ref makes the archive API fall back to the default branch
        return f"https://api.github.com/repos/{self.owner}/{self.name}/tarball/{ref or ''}"


class DownloadOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    ref_overrides: Dict[str, str] = Field(
        default_factory=dict,
        description="Module name to ref, used by operators to repair known-bad pins",
    )


class DownloadOutcome(BaseModel):
    """
    Result of a downloader run.
    `descriptor` is what was written to the working directory and `enrichment`
    holds the fields only the repository copy defined.
    """
    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Working directory holding the descriptor and any source")
    disposition: Disposition
    descriptor: Dict[str, Any] = Field(default_factory=dict)
    enrichment: Dict[str, Any] = Field(default_factory=dict)


class ReleaseRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    count: int = Field(0, ge=0)


class CollectResult(BaseModel):
    """Outcome of the collect phase for a single module."""
    model_config = ConfigDict(frozen=True)

    name: str
    disposition: Disposition
    metadata: Optional[Dict[str, Any]] = None
    source_path: Optional[str] = Field(
        None, description="Set only when the working directory was handed off to the caller"
    )
    error: Optional[str] = None

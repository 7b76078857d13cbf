from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .constants import (
    ALIAS_PACING_SECONDS,
    ALIAS_WORKERS,
    AWS_CONFIG_FILENAME,
    DIR_NAME,
    MAX_RESULTS,
    ROLE_SESSION_NAME,
    STATE_FILENAME,
    TAG_WORKERS,
    TEMPLATE_FILENAME,
)
from .errors import AliasedProfilesError, ErrorKind

# https://docs.aws.amazon.com/IAM/latest/APIReference/API_CreateRole.html
ROLE_NAME_PATTERN = re.compile(r"^(?:[\x21-\x7e]*/)?[\w+=,.@-]{1,64}$")


def validate_role_name(role_name: str) -> str:
    if not role_name or not ROLE_NAME_PATTERN.match(role_name):
        raise AliasedProfilesError(
            ErrorKind.CONFIGURATION, f"malformed role name '{role_name}'"
        )
    return role_name


@dataclass(frozen=True)
class FetchConfig:
    max_results: int = MAX_RESULTS
    tag_workers: int = TAG_WORKERS
    alias_workers: int = ALIAS_WORKERS
    alias_pacing: float = ALIAS_PACING_SECONDS
    role_session_name: str = ROLE_SESSION_NAME

    def __post_init__(self) -> None:
        if not 1 <= self.max_results <= MAX_RESULTS:
            raise AliasedProfilesError(
                ErrorKind.CONFIGURATION,
                f"max_results must be within 1..{MAX_RESULTS}, got {self.max_results}",
            )
        if self.tag_workers < 1 or self.alias_workers < 1:
            raise AliasedProfilesError(
                ErrorKind.CONFIGURATION, "worker caps must be >= 1"
            )
        if self.alias_pacing < 0:
            raise AliasedProfilesError(
                ErrorKind.CONFIGURATION, "alias pacing must not be negative"
            )


@dataclass(frozen=True)
class Paths:
    """Locations under ~/.aws used by the tool."""

    home: Path = field(default_factory=Path.home)

    @staticmethod
    def from_home(home: Optional[Path] = None) -> "Paths":
        return Paths(Path(home)) if home is not None else Paths()

    @property
    def aws_dir(self) -> Path:
        return self.home / ".aws"

    @property
    def tool_dir(self) -> Path:
        return self.aws_dir / DIR_NAME

    @property
    def state_file(self) -> Path:
        return self.tool_dir / STATE_FILENAME

    @property
    def template_file(self) -> Path:
        return self.tool_dir / TEMPLATE_FILENAME

    @property
    def aws_config_file(self) -> Path:
        return self.aws_dir / AWS_CONFIG_FILENAME

    def ensure_tool_dir(self) -> Path:
        try:
            self.tool_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise AliasedProfilesError(
                ErrorKind.IO, f"unable to create {self.tool_dir}: {e}", cause=e
            ) from e
        return self.tool_dir

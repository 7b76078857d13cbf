from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Iterable, Optional

from .config import Paths
from .errors import AliasedProfilesError, ErrorKind
from .main import Account

logger = logging.getLogger(__name__)

STATE_FIELDS = ("id", "joined_at", "status", "alias", "tags")


def dumps(accounts: Iterable[Account]) -> str:
    """Pretty-printed JSON, keys in a fixed order, trailing newline."""
    return json.dumps([a.to_state() for a in accounts], indent=4) + "\n"


def loads(data: str) -> list[Account]:
    try:
        records = json.loads(data)
    except json.JSONDecodeError as e:
        raise AliasedProfilesError(ErrorKind.IO, f"malformed state file: {e}", cause=e) from e

    if not isinstance(records, list):
        raise AliasedProfilesError(ErrorKind.IO, "malformed state file: expected a list")

    accounts = []
    for index, record in enumerate(records):
        if not isinstance(record, dict) or any(f not in record for f in STATE_FIELDS):
            raise AliasedProfilesError(
                ErrorKind.IO, f"malformed state file: record {index} is incomplete"
            )
        try:
            accounts.append(Account.from_state(record))
        except (KeyError, TypeError, ValueError) as e:
            raise AliasedProfilesError(
                ErrorKind.IO, f"malformed state file: record {index}: {e}", cause=e
            ) from e
    return accounts


class AccountStore:
    """The last discovered account list, pinned to ~/.aws/aliased-profiles/state.json."""

    def __init__(self, paths: Optional[Paths] = None):
        self.paths = paths or Paths()

    @property
    def path(self) -> Path:
        return self.paths.state_file

    def write(self, accounts: Iterable[Account]) -> Path:
        data = dumps(accounts)
        self.paths.ensure_tool_dir()
        try:
            self.path.write_text(data, encoding="utf-8")
            os.chmod(self.path, 0o644)
        except OSError as e:
            raise AliasedProfilesError(
                ErrorKind.IO, f"unable to write {self.path}: {e}", cause=e
            ) from e
        logger.info("Wrote state to %s", self.path)
        return self.path

    def read(self) -> list[Account]:
        try:
            data = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise AliasedProfilesError(
                ErrorKind.IO,
                f"no state at {self.path}, run `fetch` first",
                cause=e,
            ) from e
        except OSError as e:
            raise AliasedProfilesError(
                ErrorKind.IO, f"unable to read {self.path}: {e}", cause=e
            ) from e
        return loads(data)

    def exists(self) -> bool:
        return self.path.exists()


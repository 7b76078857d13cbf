from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional

from jinja2 import Environment, StrictUndefined, TemplateError

from .config import Paths
from .constants import DEFAULT_PROFILE_TEMPLATE
from .errors import AliasedProfilesError, ErrorKind
from .main import Account

logger = logging.getLogger(__name__)


def make_environment() -> Environment:
    return Environment(
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )


class ProfileRenderer:
    """Renders the profile template once per account.

    The account is the template's top-level context: `id`, `alias`,
    `status`, `joined_at`, `tags` and `has_tag_key_value(key, value)`.
    """

    def __init__(self, source: str, name: str = "config.tmpl"):
        self.name = name
        try:
            self.template = make_environment().from_string(source)
        except TemplateError as e:
            raise AliasedProfilesError(
                ErrorKind.CONFIGURATION, f"invalid template {name}: {e}", cause=e
            ) from e

    @staticmethod
    def from_file(path: Path) -> "ProfileRenderer":
        try:
            source = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise AliasedProfilesError(
                ErrorKind.IO,
                f"no template at {path}, run `init` to create the default one",
                cause=e,
            ) from e
        except OSError as e:
            raise AliasedProfilesError(
                ErrorKind.IO, f"unable to read {path}: {e}", cause=e
            ) from e
        return ProfileRenderer(source, name=path.name)

    def render(self, account: Account) -> str:
        try:
            return self.template.render(
                id=account.id,
                alias=account.alias,
                status=account.status,
                joined_at=account.joined_at,
                tags=account.tags,
                has_tag_key_value=account.has_tag_key_value,
            )
        except TemplateError as e:
            raise AliasedProfilesError(
                ErrorKind.CONFIGURATION,
                f"unable to render {self.name} for account {account.id}: {e}",
                cause=e,
            ) from e

    def render_all(self, accounts: Iterable[Account]) -> str:
        return "".join(self.render(account) + "\n" for account in accounts)


def init_template(paths: Optional[Paths] = None) -> Path:
    """Write the default template, replacing any existing one."""
    paths = paths or Paths()
    paths.ensure_tool_dir()
    path = paths.template_file
    try:
        path.write_text(DEFAULT_PROFILE_TEMPLATE, encoding="utf-8")
        os.chmod(path, 0o644)
    except OSError as e:
        raise AliasedProfilesError(
            ErrorKind.IO, f"unable to write {path}: {e}", cause=e
        ) from e
    logger.info("Wrote default template to %s", path)
    return path

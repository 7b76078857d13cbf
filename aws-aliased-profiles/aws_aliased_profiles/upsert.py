from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .config import Paths
from .constants import AWS_CONFIG_DELIMITER
from .errors import AliasedProfilesError, ErrorKind
from .state import AccountStore
from .template import ProfileRenderer

logger = logging.getLogger(__name__)


def insert_profiles(config: str, profiles: str) -> str:
    """
    Replace whatever sits between the two delimiter lines with `profiles`.

    Delimiters are appended when the config has none yet. The managed
    region is always padded by exactly one blank line on either side.
    """
    if AWS_CONFIG_DELIMITER not in config:
        config = "\n".join([config, AWS_CONFIG_DELIMITER, AWS_CONFIG_DELIMITER])

    parts = config.split(AWS_CONFIG_DELIMITER)
    if len(parts) != 3:
        raise AliasedProfilesError(
            ErrorKind.CONFIGURATION,
            f"expected exactly two '{AWS_CONFIG_DELIMITER}' lines in the AWS config, "
            f"found {len(parts) - 1}",
        )

    head, _, tail = parts
    return AWS_CONFIG_DELIMITER.join(
        [
            head.strip(" \n") + "\n\n",
            "\n" + profiles.strip(" \n") + "\n",
            "\n\n" + tail.strip(" \n"),
        ]
    )


def read_aws_config(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("No AWS config at %s, starting from an empty one", path)
        return ""
    except OSError as e:
        raise AliasedProfilesError(
            ErrorKind.IO, f"unable to read {path}: {e}", cause=e
        ) from e


def write_aws_config(path: Path, config: str) -> None:
    try:
        path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
        path.write_text(config, encoding="utf-8")
        os.chmod(path, 0o644)
    except OSError as e:
        raise AliasedProfilesError(
            ErrorKind.IO, f"unable to write {path}: {e}", cause=e
        ) from e


def upsert_aws_config(paths: Optional[Paths] = None) -> int:
    """Render every stored account into ~/.aws/config. Returns the account count."""
    paths = paths or Paths()
    renderer = ProfileRenderer.from_file(paths.template_file)
    accounts = AccountStore(paths).read()
    profiles = renderer.render_all(accounts)

    config = read_aws_config(paths.aws_config_file)
    write_aws_config(paths.aws_config_file, insert_profiles(config, profiles))
    logger.info("Upserted %d account profiles into %s", len(accounts), paths.aws_config_file)
    return len(accounts)

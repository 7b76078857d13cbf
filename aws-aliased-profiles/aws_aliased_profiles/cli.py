import logging
import sys
from functools import wraps
from typing import Callable, Optional

import click

from .config import FetchConfig, Paths
from .errors import AliasedProfilesError
from .fetch import fetch_accounts
from .signals import CancellationToken, cancel_on_signals
from .state import AccountStore
from .template import init_template
from .upsert import upsert_aws_config

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def exit_on_error(func: Callable) -> Callable:
    """Turn an AliasedProfilesError into `error: <message>` and exit 1."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except AliasedProfilesError as e:
            logger.debug("Terminal %s error", e.kind.value, exc_info=True)
            click.echo(f"error: {e}", err=True)
            sys.exit(1)

    return wrapper


def run_fetch(
    master_profile: str,
    account_role: str,
    paths: Optional[Paths] = None,
    config: Optional[FetchConfig] = None,
) -> int:
    """Run discovery under a signal-driven cancellation token and persist the result."""
    store = AccountStore(paths)
    with cancel_on_signals(CancellationToken()) as token:
        accounts = fetch_accounts(token, master_profile, account_role, config, store)
    click.echo(f"Wrote {len(accounts)} accounts to {store.path}")
    return len(accounts)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
def cli(verbose: bool) -> None:
    """Quickly update your AWS config with all your organization accounts' aliases."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    if not verbose:
        # botocore is chatty at INFO about credential lookups
        logging.getLogger("botocore").setLevel(logging.WARNING)


@cli.command(name="init", short_help="Write the default profile template.")
@exit_on_error
def init_command() -> None:
    """Write the default template to ~/.aws/aliased-profiles/config.tmpl."""
    path = init_template()
    click.echo(f"New template placed at {path}")


@cli.command(name="fetch", short_help="Fetch account data from the organization.")
@click.argument("master_profile")
@click.argument("account_role")
@exit_on_error
def fetch_command(master_profile: str, account_role: str) -> None:
    """Fetch data for every account in the organization.

    MASTER_PROFILE is the profile used to list the organization's accounts
    and from which STS tokens for assuming roles are generated.

    ACCOUNT_ROLE is the role name assumed in each account so that its
    alias can be read.
    """
    run_fetch(master_profile, account_role)


@cli.command(name="upsert", short_help="Upsert ~/.aws/config with the fetched profiles.")
@exit_on_error
def upsert_command() -> None:
    """Render every fetched account into the managed region of ~/.aws/config."""
    count = upsert_aws_config()
    click.echo(f"Upserted profiles for {count} accounts into {Paths().aws_config_file}")


if __name__ == "__main__":
    cli()

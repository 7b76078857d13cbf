from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import boto3
from boto3.session import Session
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, ProfileNotFound

from . import main as aap
from .config import FetchConfig
from .errors import AliasedProfilesError, ErrorKind, is_access_denied, wrap

logger = logging.getLogger(__name__)

CLIENT_CONFIG = Config(retries={"mode": "standard"})

# Organizations, IAM and STS are global; any region in the partition will do.
DEFAULT_REGION = "us-east-1"


@dataclass
class AliasLookup:
    aliases: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def alias(self) -> str:
        """The alias when exactly one is set, otherwise empty."""
        return self.aliases[0] if len(self.aliases) == 1 else ""


def role_arn(partition: str, account_id: str, role_name: str) -> str:
    return f"arn:{partition}:iam::{account_id}:role/{role_name}"


def stdin_is_tty() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def master_session(
    profile: str, is_tty: Callable[[], bool] = stdin_is_tty
) -> Session:
    """
    Build a boto3 session for the master profile.

    A profile that assumes its own role behind an MFA device makes botocore
    prompt for a token code. That only works on a terminal, so without one
    we fail before any API call.
    """
    try:
        session = boto3.Session(profile_name=profile)
        # boto3 exposes no public accessor for the profile's raw settings,
        # so read them from the underlying botocore session.
        scoped = session._session.get_scoped_config()
    except ProfileNotFound as e:
        raise AliasedProfilesError(
            ErrorKind.CONFIGURATION, f"profile '{profile}' not found", cause=e
        ) from e
    except BotoCoreError as e:
        raise AliasedProfilesError(
            ErrorKind.CONFIGURATION,
            f"unable to load profile '{profile}': {e}",
            cause=e,
        ) from e

    if scoped.get("role_arn") and scoped.get("mfa_serial") and not is_tty():
        raise AliasedProfilesError(
            ErrorKind.MFA_UNAVAILABLE,
            f"profile '{profile}' requires an MFA token but stdin is not a terminal",
        )
    return session


class AssumedRole:
    """
    Credentials for one account, acquired on first use.

    The STS call is deferred until a client is requested, and the
    resulting credentials live only as long as this object.
    """

    def __init__(self, broker: "CredentialBroker", account_id: str, role_name: str):
        self.broker = broker
        self.account_id = account_id
        self.role_name = role_name
        self.arn = role_arn(broker.partition, account_id, role_name)
        self._credentials: Optional[dict[str, str]] = None
        self._lock = threading.Lock()

    @property
    def acquired(self) -> bool:
        return self._credentials is not None

    def credentials(self) -> dict[str, str]:
        with self._lock:
            if self._credentials is None:
                logger.debug("Assuming %s", self.arn)
                self._credentials = self.broker.sts.assume_role_and_get_credentials(
                    self.arn, self.broker.session_name
                )
            return self._credentials

    def client(self, service_name: str) -> Any:
        return self.broker.session.client(
            service_name,
            region_name=self.broker.region,
            config=CLIENT_CONFIG,
            **self.credentials(),
        )


class CredentialBroker:
    def __init__(
        self,
        session: Session,
        sts: Optional[aap.STS] = None,
        session_name: str = "AssumeRoleSession",
    ):
        self.session = session
        self.region = session.region_name or DEFAULT_REGION
        self.sts = sts or aap.STS(
            session.client("sts", region_name=self.region, config=CLIENT_CONFIG)  # type: ignore
        )
        self.session_name = session_name
        self.partition = session.get_partition_for_region(self.region)

    def for_account(self, account_id: str, role_name: str) -> AssumedRole:
        return AssumedRole(self, account_id, role_name)


class Tools:
    """Provider surface used by the discovery pipeline."""

    def __init__(self, session: Session, config: Optional[FetchConfig] = None):
        self.session = session
        self.config = config or FetchConfig()
        self.org = aap.Organizations(
            session.client(  # type: ignore
                "organizations",
                region_name=session.region_name or DEFAULT_REGION,
                config=CLIENT_CONFIG,
            ),
            max_results=self.config.max_results,
        )
        self.broker = CredentialBroker(
            session, session_name=self.config.role_session_name
        )

    @staticmethod
    def from_profile(profile: str, config: Optional[FetchConfig] = None) -> "Tools":
        session = master_session(profile)
        try:
            return Tools(session, config)
        except (BotoCoreError, ClientError) as e:
            raise wrap(e, f"unable to set up clients for profile '{profile}'") from e

    def list_accounts(self, page_token: Optional[str] = None) -> aap.AccountsPage:
        try:
            return self.org.list_accounts(page_token)
        except (BotoCoreError, ClientError) as e:
            raise wrap(e, "unable to list accounts") from e

    def list_tags(
        self, resource_id: str, page_token: Optional[str] = None
    ) -> aap.TagsPage:
        try:
            return self.org.list_tags(resource_id, page_token)
        except (BotoCoreError, ClientError) as e:
            raise wrap(e, f"unable to list tags for account {resource_id}") from e

    def assume(self, account_id: str, role_name: str) -> AssumedRole:
        return self.broker.for_account(account_id, role_name)

    def list_aliases(self, credentials: AssumedRole) -> AliasLookup:
        try:
            iam = aap.IAM(credentials.client("iam"))
            return AliasLookup(aliases=iam.list_account_aliases())
        except (BotoCoreError, ClientError) as e:
            if is_access_denied(e):
                logger.debug(
                    "Access denied listing aliases in %s via %s: %s",
                    credentials.account_id,
                    credentials.arn,
                    e,
                )
                return AliasLookup(skipped=True)
            raise wrap(
                e, f"unable to list aliases for account {credentials.account_id}"
            ) from e

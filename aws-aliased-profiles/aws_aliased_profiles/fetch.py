"""
Discovery of every account in an AWS Organization.

The pipeline runs three phases over the account list:

1. seed:  page through Organizations ListAccounts
2. tags:  ListTagsForResource for each account (one at a time)
3. alias: assume `<role>` in each account and call IAM ListAccountAliases
          (up to ten at a time, each worker paced by a one second delay)

Each phase finishes before the next one starts. Workers are started in
account order; the first failure cancels the remaining workers and no
state is written.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional, Protocol

import click

from .config import FetchConfig, validate_role_name
from .errors import AliasedProfilesError, ErrorKind, cancelled, wrap
from .main import ACCOUNT_ID_PATTERN, Account, AccountsPage, TagsPage
from .signals import CancellationToken

if TYPE_CHECKING:
    from .state import AccountStore
    from .tools import AliasLookup, AssumedRole

logger = logging.getLogger(__name__)


class ProviderClient(Protocol):
    def list_accounts(self, page_token: Optional[str] = None) -> AccountsPage: ...

    def list_tags(
        self, resource_id: str, page_token: Optional[str] = None
    ) -> TagsPage: ...

    def assume(self, account_id: str, role_name: str) -> "AssumedRole": ...

    def list_aliases(self, credentials: "AssumedRole") -> "AliasLookup": ...


class AccountState(str, Enum):
    SEEDED = "seeded"
    TAGGED = "tagged"
    COMPLETE = "complete"
    FAILED_TAG = "failed(tag)"
    FAILED_ALIAS = "failed(alias)"
    ABANDONED = "abandoned"


TERMINAL_STATES = (
    AccountState.COMPLETE,
    AccountState.FAILED_TAG,
    AccountState.FAILED_ALIAS,
    AccountState.ABANDONED,
)


class Progress:
    """A single rewritable counter line on stdout."""

    def __init__(self, template: str, enabled: bool = True):
        self.template = template
        self.enabled = enabled
        self.count = 0
        self._started = False
        self._lock = threading.Lock()

    def update(self, count: int) -> None:
        with self._lock:
            self.count = count
            self._render()

    def advance(self) -> None:
        with self._lock:
            self.count += 1
            self._render()

    def _render(self) -> None:
        self._started = True
        if self.enabled:
            click.echo("\r" + self.template.format(self.count), nl=False)

    def done(self) -> None:
        with self._lock:
            if self._started and self.enabled:
                click.echo()
            self._started = False


class Pipeline:
    def __init__(
        self,
        provider: ProviderClient,
        token: Optional[CancellationToken] = None,
        config: Optional[FetchConfig] = None,
        store: Optional["AccountStore"] = None,
        show_progress: bool = True,
    ):
        self.provider = provider
        self.token = token or CancellationToken()
        self.config = config or FetchConfig()
        self.store = store
        self.show_progress = show_progress
        self.states: dict[str, AccountState] = {}
        self._error: Optional[AliasedProfilesError] = None
        self._lock = threading.Lock()

    def run(self, account_role: str) -> list[Account]:
        validate_role_name(account_role)
        try:
            accounts = self.seed()
            logger.info("Seeded %d accounts", len(accounts))

            self.fan_out(
                "Fetched tags for {} accounts...",
                accounts,
                self.fetch_tags,
                self.config.tag_workers,
                AccountState.FAILED_TAG,
            )
            self.fan_out(
                "Fetched aliases for {} accounts...",
                accounts,
                lambda account: self.fetch_alias(account, account_role),
                self.config.alias_workers,
                AccountState.FAILED_ALIAS,
            )
            self.token.raise_if_cancelled()
        except AliasedProfilesError:
            self._abandon()
            raise

        if self.store is not None:
            self.store.write(accounts)
        return list(accounts)

    def seed(self) -> list[Account]:
        accounts: list[Account] = []
        seen: set[str] = set()
        progress = Progress("Fetched {} accounts...", self.show_progress)
        page_token: Optional[str] = None
        progress.update(0)
        try:
            while True:
                self.token.raise_if_cancelled()
                page = self.provider.list_accounts(page_token)
                for account in page.accounts:
                    if not ACCOUNT_ID_PATTERN.match(account.id):
                        raise AliasedProfilesError(
                            ErrorKind.PROVIDER, f"unexpected account id '{account.id}'"
                        )
                    if account.id in seen:
                        raise AliasedProfilesError(
                            ErrorKind.PROVIDER, f"account {account.id} listed twice"
                        )
                    seen.add(account.id)
                    accounts.append(account)
                    self.states[account.id] = AccountState.SEEDED
                progress.update(len(accounts))

                if not page.next_token:
                    break
                page_token = page.next_token
        finally:
            progress.done()
        return accounts

    def fetch_tags(self, account: Account) -> None:
        tags = []
        page_token: Optional[str] = None
        while True:
            self.token.raise_if_cancelled()
            page = self.provider.list_tags(account.id, page_token)
            tags.extend(page.tags)
            if not page.next_token:
                break
            page_token = page.next_token

        account.tags = tags
        self.states[account.id] = AccountState.TAGGED

    def fetch_alias(self, account: Account, account_role: str) -> None:
        if self.token.wait(self.config.alias_pacing):
            raise cancelled()

        credentials = self.provider.assume(account.id, account_role)
        lookup = self.provider.list_aliases(credentials)
        if lookup.skipped:
            logger.debug(
                "Skipping alias for %s: role %s denied", account.id, credentials.arn
            )
        else:
            account.alias = lookup.alias
        self.states[account.id] = AccountState.COMPLETE

    def fan_out(
        self,
        label: str,
        accounts: list[Account],
        worker: Callable[[Account], None],
        cap: int,
        failed_state: AccountState,
    ) -> None:
        """
        Run `worker` over `accounts` with at most `cap` in flight.

        The semaphore is taken before a task is submitted, so tasks start
        in account order and nothing queues inside the executor.
        """
        semaphore = threading.BoundedSemaphore(cap)
        progress = Progress(label, self.show_progress)
        futures = []

        try:
            with ThreadPoolExecutor(max_workers=cap) as pool:
                for account in accounts:
                    if not self._acquire(semaphore):
                        break
                    try:
                        futures.append(
                            pool.submit(
                                self._guarded,
                                worker,
                                account,
                                semaphore,
                                progress,
                                failed_state,
                            )
                        )
                    except RuntimeError:
                        semaphore.release()
                        raise
                wait(futures)
        finally:
            progress.done()

        if self._error is not None:
            raise self._error
        self.token.raise_if_cancelled()

    def _acquire(self, semaphore: threading.BoundedSemaphore) -> bool:
        while not semaphore.acquire(timeout=0.1):
            if self.token.cancelled:
                return False
        if self.token.cancelled:
            semaphore.release()
            return False
        return True

    def _guarded(
        self,
        worker: Callable[[Account], None],
        account: Account,
        semaphore: threading.BoundedSemaphore,
        progress: Progress,
        failed_state: AccountState,
    ) -> None:
        try:
            self.token.raise_if_cancelled()
            worker(account)
            progress.advance()
        except AliasedProfilesError as e:
            self._fail(account, e, failed_state)
        except Exception as e:
            self._fail(account, wrap(e, f"account {account.id}"), failed_state)
        finally:
            semaphore.release()

    def _fail(
        self, account: Account, error: AliasedProfilesError, failed_state: AccountState
    ) -> None:
        if error.kind is ErrorKind.CANCELLED:
            self.states[account.id] = AccountState.ABANDONED
            return
        self.states[account.id] = failed_state
        with self._lock:
            if self._error is None:
                logger.debug("Account %s failed, cancelling peers: %s", account.id, error)
                self._error = error
        self.token.cancel()

    def _abandon(self) -> None:
        for account_id, state in self.states.items():
            if state not in TERMINAL_STATES:
                self.states[account_id] = AccountState.ABANDONED


def fetch_accounts(
    token: CancellationToken,
    master_profile: str,
    account_role: str,
    config: Optional[FetchConfig] = None,
    store: Optional["AccountStore"] = None,
) -> list[Account]:
    """Discover every account reachable from `master_profile`."""
    from .tools import Tools

    validate_role_name(account_role)
    tools = Tools.from_profile(master_profile, config)
    return Pipeline(tools, token, config, store).run(account_role)

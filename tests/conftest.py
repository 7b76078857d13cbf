"""
tests/conftest.py - shared fixtures

Fake provider objects for the discovery pipeline, plus isolated home
directories and dummy AWS credentials.
"""
import dataclasses
import threading
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import pytest

from aws_aliased_profiles.config import FetchConfig, Paths
from aws_aliased_profiles.errors import AliasedProfilesError, ErrorKind
from aws_aliased_profiles.main import Account, AccountsPage, Tag, TagsPage
from aws_aliased_profiles.tools import AliasLookup

DENIED = "denied"


@pytest.fixture(autouse=True)
def aws_environment(monkeypatch, tmp_path):
    """Never touch real credentials or the real ~/.aws."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "aws-config"))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "aws-credentials"))
    monkeypatch.delenv("AWS_PROFILE", raising=False)


@pytest.fixture
def home(monkeypatch, tmp_path):
    path = tmp_path / "home"
    path.mkdir()
    monkeypatch.setenv("HOME", str(path))
    return path


@pytest.fixture
def paths(home):
    return Paths.from_home(home)


@pytest.fixture
def fast_config():
    return FetchConfig(alias_pacing=0.0)


def make_account(index: int, status: str = "ACTIVE") -> Account:
    return Account(
        id=f"{index:012d}",
        joined_at=datetime(2020, 1, 1, 12, 0, index % 60, tzinfo=timezone.utc),
        status=status,
    )


class FakeAssumedRole:
    def __init__(self, account_id: str, role_name: str):
        self.account_id = account_id
        self.role_name = role_name
        self.arn = f"arn:aws:iam::{account_id}:role/{role_name}"


class FakeProvider:
    """
    In-memory stand-in for Tools.

    `aliases` maps an account id to a list of aliases, an exception to
    raise, or DENIED. Calls can be slowed down with `delay` to make the
    in-flight counters meaningful.
    """

    def __init__(
        self,
        accounts: List[Account],
        tags: Optional[Dict[str, List[Tag]]] = None,
        aliases: Optional[Dict[str, object]] = None,
        page_size: int = 20,
        tag_page_size: int = 20,
        delay: float = 0.0,
        list_accounts_error: Optional[Exception] = None,
        on_tags: Optional[Callable[[int], None]] = None,
    ):
        self.accounts = accounts
        self.tags = tags or {}
        self.aliases = aliases or {}
        self.page_size = page_size
        self.tag_page_size = tag_page_size
        self.delay = delay
        self.list_accounts_error = list_accounts_error
        self.on_tags = on_tags

        self.calls: Dict[str, int] = defaultdict(int)
        self.in_flight: Dict[str, int] = defaultdict(int)
        self.max_in_flight: Dict[str, int] = defaultdict(int)
        self.alias_order: List[str] = []
        self._lock = threading.Lock()

    def _enter(self, kind: str) -> int:
        with self._lock:
            self.calls[kind] += 1
            self.in_flight[kind] += 1
            self.max_in_flight[kind] = max(self.max_in_flight[kind], self.in_flight[kind])
            return self.calls[kind]

    def _exit(self, kind: str) -> None:
        with self._lock:
            self.in_flight[kind] -= 1

    def list_accounts(self, page_token=None) -> AccountsPage:
        self.calls["list_accounts"] += 1
        if self.list_accounts_error is not None:
            raise self.list_accounts_error
        start = int(page_token or 0)
        end = start + self.page_size
        page = [dataclasses.replace(a, tags=list(a.tags)) for a in self.accounts[start:end]]
        return AccountsPage(
            accounts=page,
            next_token=str(end) if end < len(self.accounts) else None,
        )

    def list_tags(self, resource_id, page_token=None) -> TagsPage:
        count = self._enter("list_tags")
        try:
            time.sleep(self.delay)
            tags = self.tags.get(resource_id, [])
            start = int(page_token or 0)
            end = start + self.tag_page_size
            return TagsPage(
                tags=tags[start:end],
                next_token=str(end) if end < len(tags) else None,
            )
        finally:
            self._exit("list_tags")
            if self.on_tags is not None:
                self.on_tags(count)

    def assume(self, account_id, role_name) -> FakeAssumedRole:
        return FakeAssumedRole(account_id, role_name)

    def list_aliases(self, credentials) -> AliasLookup:
        self._enter("list_aliases")
        try:
            with self._lock:
                self.alias_order.append(credentials.account_id)
            time.sleep(self.delay)
            result = self.aliases.get(credentials.account_id, [])
            if result == DENIED:
                return AliasLookup(skipped=True)
            if isinstance(result, Exception):
                raise result
            return AliasLookup(aliases=list(result))
        finally:
            self._exit("list_aliases")


def transport_error(account_id: str) -> AliasedProfilesError:
    return AliasedProfilesError(
        ErrorKind.TRANSPORT, f"unable to list aliases for account {account_id}: timeout"
    )

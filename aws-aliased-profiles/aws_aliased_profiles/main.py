from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from mypy_boto3_iam import IAMClient
from mypy_boto3_organizations import OrganizationsClient
from mypy_boto3_organizations.type_defs import AccountTypeDef, TagTypeDef
from mypy_boto3_sts import STSClient

ACCOUNT_ID_PATTERN = re.compile(r"^[0-9]{12}$")


def format_timestamp(value: datetime) -> str:
    """Fixed ISO-8601 form, always UTC with an explicit offset."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Tag:
    key: str
    value: str

    @staticmethod
    def from_dict(d: TagTypeDef) -> "Tag":
        return Tag(key=d["Key"], value=d["Value"])

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "value": self.value}

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


@dataclass
class Account:
    id: str
    joined_at: datetime
    status: str
    alias: str = ""
    tags: list[Tag] = field(default_factory=list)

    @staticmethod
    def from_dict(d: AccountTypeDef) -> "Account":
        """Seed record from an Organizations ListAccounts entry."""
        return Account(
            id=d["Id"],  # type: ignore
            joined_at=d["JoinedTimestamp"],  # type: ignore
            status=d["Status"],  # type: ignore
        )

    @staticmethod
    def from_state(d: dict[str, Any]) -> "Account":
        return Account(
            id=d["id"],
            joined_at=parse_timestamp(d["joined_at"]),
            status=d["status"],
            alias=d["alias"],
            tags=[Tag(key=t["key"], value=t["value"]) for t in d["tags"]],
        )

    def to_state(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "joined_at": format_timestamp(self.joined_at),
            "status": self.status,
            "alias": self.alias,
            "tags": [tag.to_dict() for tag in self.tags],
        }

    def has_tag_key_value(self, key: str, value: str) -> bool:
        return any(tag.key == key and tag.value == value for tag in self.tags)

    @property
    def profile_name(self) -> str:
        return self.alias or self.id

    def __str__(self) -> str:
        return f"{self.profile_name} ({self.id})"


@dataclass
class AccountsPage:
    accounts: list[Account]
    next_token: Optional[str] = None


@dataclass
class TagsPage:
    tags: list[Tag]
    next_token: Optional[str] = None


class Organizations:
    def __init__(self, client: OrganizationsClient, max_results: int = 20):
        self.client = client
        self.max_results = max_results

    def list_accounts(self, page_token: Optional[str] = None) -> AccountsPage:
        """
        Fetch a single page of accounts in the organization.
        """
        kwargs: dict[str, Any] = {"MaxResults": self.max_results}
        if page_token:
            kwargs["NextToken"] = page_token
        response = self.client.list_accounts(**kwargs)
        return AccountsPage(
            accounts=[Account.from_dict(a) for a in response["Accounts"]],
            next_token=response.get("NextToken"),
        )

    def list_tags(self, resource_id: str, page_token: Optional[str] = None) -> TagsPage:
        """
        Fetch a single page of tags attached to an account.
        """
        kwargs: dict[str, Any] = {"ResourceId": resource_id}
        if page_token:
            kwargs["NextToken"] = page_token
        response = self.client.list_tags_for_resource(**kwargs)
        return TagsPage(
            tags=[Tag.from_dict(t) for t in response.get("Tags", [])],
            next_token=response.get("NextToken"),
        )


class STS:
    def __init__(self, client: STSClient):
        self.client = client

    def assume_role_and_get_credentials(
        self, role_arn: str, session_name: str = "AssumeRoleSession"
    ) -> dict[str, str]:
        assumed_role_object = self.client.assume_role(
            RoleArn=role_arn,
            RoleSessionName=session_name,
        )
        credentials = assumed_role_object["Credentials"]
        return {
            "aws_access_key_id": credentials["AccessKeyId"],
            "aws_secret_access_key": credentials["SecretAccessKey"],
            "aws_session_token": credentials["SessionToken"],
        }


class IAM:
    def __init__(self, client: IAMClient):
        self.client = client

    def list_account_aliases(self) -> list[str]:
        # ListAccountAliases is not paginated in practice, an account has
        # at most one alias.
        return list(self.client.list_account_aliases()["AccountAliases"])

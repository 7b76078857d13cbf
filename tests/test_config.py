"""
tests/test_config.py - settings, role names and paths
"""
import pytest

from aws_aliased_profiles.config import FetchConfig, Paths, validate_role_name
from aws_aliased_profiles.errors import AliasedProfilesError, ErrorKind


@pytest.mark.parametrize(
    "name",
    ["OrganizationAccountAccessRole", "read-only", "a+b=c,d.e@f", "division/Admin"],
)
def test_valid_role_names(name):
    assert validate_role_name(name) == name


@pytest.mark.parametrize("name", ["", "with space", "x" * 65, "bad#role"])
def test_malformed_role_names(name):
    with pytest.raises(AliasedProfilesError) as exc_info:
        validate_role_name(name)

    assert exc_info.value.kind is ErrorKind.CONFIGURATION


def test_fetch_config_defaults():
    config = FetchConfig()

    assert config.max_results == 20
    assert config.tag_workers == 1
    assert config.alias_workers == 10
    assert config.alias_pacing == 1.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_results": 0},
        {"max_results": 21},
        {"tag_workers": 0},
        {"alias_workers": 0},
        {"alias_pacing": -1},
    ],
)
def test_fetch_config_validation(kwargs):
    with pytest.raises(AliasedProfilesError) as exc_info:
        FetchConfig(**kwargs)

    assert exc_info.value.kind is ErrorKind.CONFIGURATION


def test_paths(tmp_path):
    paths = Paths.from_home(tmp_path)

    assert paths.tool_dir == tmp_path / ".aws" / "aliased-profiles"
    assert paths.state_file.name == "state.json"
    assert paths.template_file.name == "config.tmpl"
    assert paths.aws_config_file == tmp_path / ".aws" / "config"


def test_paths_follow_home(home):
    assert Paths().home == home


def test_ensure_tool_dir(tmp_path):
    paths = Paths.from_home(tmp_path)

    assert paths.ensure_tool_dir().is_dir()
    assert paths.ensure_tool_dir() == paths.tool_dir

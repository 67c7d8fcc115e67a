"""Repository configuration from .pr-sheriff.yml."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from .errors import ConfigNotFoundError, ConfigParseError
from .models import RepositoryRef, TeamMember

if TYPE_CHECKING:
    from .github.api import GitHubClient

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".pr-sheriff.yml"


@dataclass
class TeamConfig:
    """The team whose members review pull requests."""

    name: str
    members: list[TeamMember] = field(default_factory=list)

    def find_member(self, github_login: str) -> TeamMember | None:
        """Case-insensitive lookup by GitHub handle."""
        login = github_login.lower()
        for member in self.members:
            if member.github.lower() == login:
                return member
        return None


@dataclass
class AutoAssignConfig:
    """Automatic reviewer assignment settings."""

    enabled: bool
    reviewers_per_pr: int
    assignment_strategy: str
    exclude_authors: bool


@dataclass
class NewPRNotificationConfig:
    """Channel announcement for newly opened pull requests."""

    enabled: bool
    channel: str
    include_reviewers: bool = True
    include_assignees: bool = True
    include_description: bool = True
    include_labels: bool = True
    include_files_changed: bool = False


@dataclass
class DailyRemindersConfig:
    enabled: bool
    message_type: str = "dm"


@dataclass
class BlameConfig:
    """Stale pull request announcements."""

    enabled: bool
    channel: str
    after_days: int


@dataclass
class RulesConfig:
    """Filtering rules applied by the batch jobs."""

    reviewers_per_pr: int
    exclude_labels: list[str] = field(default_factory=list)
    include_labels: list[str] = field(default_factory=list)
    timezone: str = "UTC"


@dataclass
class RepositoryConfig:
    """Validated contents of a repository's .pr-sheriff.yml."""

    team: TeamConfig
    auto_assign: AutoAssignConfig
    new_pr_notifications: NewPRNotificationConfig
    daily_reminders: DailyRemindersConfig
    blame: BlameConfig
    rules: RulesConfig
    version: str | None = None


def _section(data: dict[str, Any], key: str, path: str) -> dict[str, Any]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise ConfigParseError(f"'{path}{key}' must be a mapping")
    return value


def _field(
    data: dict[str, Any],
    key: str,
    expected: type | tuple[type, ...],
    path: str,
    default: Any = ...,
) -> Any:
    if key not in data or data[key] is None:
        if default is ...:
            raise ConfigParseError(f"Missing required field '{path}{key}'")
        return default

    value = data[key]
    # bool is an int subclass; reject True/False where a number is expected
    if expected is int and isinstance(value, bool):
        raise ConfigParseError(f"'{path}{key}' must be an integer")
    if not isinstance(value, expected):
        names = (
            " or ".join(t.__name__ for t in expected)
            if isinstance(expected, tuple)
            else expected.__name__
        )
        raise ConfigParseError(f"'{path}{key}' must be of type {names}")
    return value


def _string_list(data: dict[str, Any], key: str, path: str, required: bool) -> list[str]:
    values = _field(data, key, list, path, ... if required else [])
    if not all(isinstance(v, str) for v in values):
        raise ConfigParseError(f"'{path}{key}' must be a list of strings")
    return list(values)


def _parse_members(team: dict[str, Any]) -> list[TeamMember]:
    members_data = _field(team, "members", list, "team.")
    members: list[TeamMember] = []
    for i, entry in enumerate(members_data):
        if not isinstance(entry, dict):
            raise ConfigParseError(f"'team.members[{i}]' must be a mapping")
        members.append(
            TeamMember(
                github=_field(entry, "github", str, f"team.members[{i}]."),
                slack=_field(entry, "slack", str, f"team.members[{i}]."),
            )
        )
    return members


def parse_repository_config(yaml_content: str) -> RepositoryConfig:
    """
    Parse and validate .pr-sheriff.yml content.

    Args:
        yaml_content: The raw YAML string.

    Returns:
        A validated RepositoryConfig.

    Raises:
        ConfigParseError: If the YAML is invalid or a required field is
            missing or has the wrong type.
    """
    try:
        data = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigParseError("Configuration must be a YAML mapping")

    team = _section(data, "team", "")
    auto_assign = _section(_section(data, "github", ""), "auto_assign", "github.")
    notifications = _section(data, "notifications", "")
    new_pr = _section(notifications, "new_pr_notifications", "notifications.")
    reminders = _section(notifications, "daily_reminders", "notifications.")
    blame = _section(notifications, "blame", "notifications.")
    rules = _section(data, "rules", "")

    auto_assign_config = AutoAssignConfig(
        enabled=_field(auto_assign, "enabled", bool, "github.auto_assign."),
        reviewers_per_pr=_field(auto_assign, "reviewers_per_pr", int, "github.auto_assign."),
        assignment_strategy=_field(
            auto_assign, "assignment_strategy", str, "github.auto_assign."
        ),
        exclude_authors=_field(auto_assign, "exclude_authors", bool, "github.auto_assign."),
    )
    if auto_assign_config.reviewers_per_pr < 0:
        raise ConfigParseError("'github.auto_assign.reviewers_per_pr' must not be negative")

    new_pr_path = "notifications.new_pr_notifications."
    blame_path = "notifications.blame."

    version = data.get("version")

    return RepositoryConfig(
        version=str(version) if version is not None else None,
        team=TeamConfig(
            name=_field(team, "name", str, "team."),
            members=_parse_members(team),
        ),
        auto_assign=auto_assign_config,
        new_pr_notifications=NewPRNotificationConfig(
            enabled=_field(new_pr, "enabled", bool, new_pr_path),
            channel=_field(new_pr, "channel", str, new_pr_path),
            include_reviewers=_field(new_pr, "include_reviewers", bool, new_pr_path, True),
            include_assignees=_field(new_pr, "include_assignees", bool, new_pr_path, True),
            include_description=_field(
                new_pr, "include_description", bool, new_pr_path, True
            ),
            include_labels=_field(new_pr, "include_labels", bool, new_pr_path, True),
            include_files_changed=_field(
                new_pr, "include_files_changed", bool, new_pr_path, False
            ),
        ),
        daily_reminders=DailyRemindersConfig(
            enabled=_field(reminders, "enabled", bool, "notifications.daily_reminders."),
            message_type=_field(
                reminders, "message_type", str, "notifications.daily_reminders.", "dm"
            ),
        ),
        blame=BlameConfig(
            enabled=_field(blame, "enabled", bool, blame_path),
            channel=_field(blame, "channel", str, blame_path),
            after_days=_field(blame, "after_days", int, blame_path),
        ),
        rules=RulesConfig(
            reviewers_per_pr=_field(
                rules, "reviewers_per_pr", int, "rules.", auto_assign_config.reviewers_per_pr
            ),
            exclude_labels=_string_list(rules, "exclude_labels", "rules.", required=True),
            include_labels=_string_list(rules, "include_labels", "rules.", required=False),
            timezone=_field(rules, "timezone", str, "rules.", "UTC"),
        ),
    )


async def fetch_repository_config(
    github: "GitHubClient",
    repo: RepositoryRef,
    ref: str | None = None,
) -> RepositoryConfig:
    """
    Fetch and parse .pr-sheriff.yml from a repository.

    Args:
        github: GitHub client used to read the file.
        repo: The repository to read from.
        ref: Branch, tag or SHA. Defaults to the repository's default branch.

    Raises:
        ConfigNotFoundError: If the file does not exist.
        ConfigParseError: If the file exists but cannot be parsed.
    """
    content = await github.get_file_content(repo, CONFIG_FILE_NAME, ref)
    if content is None:
        raise ConfigNotFoundError(f"No {CONFIG_FILE_NAME} found in {repo.full_name}")

    config = parse_repository_config(content)
    logger.debug(
        f"Loaded {CONFIG_FILE_NAME} for {repo.full_name}: team '{config.team.name}' "
        f"with {len(config.team.members)} members"
    )
    return config

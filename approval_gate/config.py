"""Environment-driven configuration.

Action inputs arrive as ``INPUT_<NAME>`` variables (upper-cased, dashes
kept), runner context as ``GITHUB_*`` variables.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from approval_gate.exceptions import ConfigurationError
from approval_gate.models import Policy

logger = logging.getLogger(__name__)

_REPOSITORY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


def split_words(value: str) -> list[str]:
    """Split a comma-separated input, trimming and dropping empty entries."""
    return [w.strip() for w in (value or "").split(",") if w.strip()]


class ActionInputs(BaseSettings):
    """Inputs declared in action.yml."""

    timeout_seconds: float = Field(default=3600, validation_alias="INPUT_TIMEOUT-SECONDS")
    poll_interval_seconds: float = Field(default=10, validation_alias="INPUT_POLL-INTERVAL-SECONDS")
    approval_keywords: str = Field(default="", validation_alias="INPUT_APPROVAL-KEYWORDS")
    rejection_keywords: str = Field(default="", validation_alias="INPUT_REJECTION-KEYWORDS")
    fail_on_rejection: bool = Field(default=True, validation_alias="INPUT_FAIL-ON-REJECTION")
    fail_on_timeout: bool = Field(default=True, validation_alias="INPUT_FAIL-ON-TIMEOUT")
    issue_title: str = Field(default="", validation_alias="INPUT_ISSUE-TITLE")
    issue_body: str = Field(default="", validation_alias="INPUT_ISSUE-BODY")
    approvers: str = Field(default="", validation_alias="INPUT_APPROVERS")
    github_token: str = Field(default="", validation_alias="INPUT_GITHUB-TOKEN")

    model_config = {"extra": "ignore", "populate_by_name": True, "env_ignore_empty": True}

    @property
    def approver_list(self) -> list[str]:
        return split_words(self.approvers)

    def to_policy(self) -> Policy:
        """Build the validated policy; raises ``pydantic.ValidationError``."""
        return Policy(
            timeout_seconds=self.timeout_seconds,
            poll_interval_seconds=self.poll_interval_seconds,
            approval_keywords=split_words(self.approval_keywords),
            rejection_keywords=split_words(self.rejection_keywords),
            fail_on_rejection=self.fail_on_rejection,
            fail_on_timeout=self.fail_on_timeout,
        )


class RunnerEnvironment(BaseSettings):
    """GitHub Actions runner context."""

    token: str = ""
    repository: str
    api_url: str = "https://api.github.com"
    server_url: str = "https://github.com"
    workflow: str = "undefined-workflow"
    job: str = "undefined-job"  # job id from the workflow file, not its display name
    run_id: int = 0
    action: str = "undefined-action"
    actor: str = "undefined-actor"
    event_name: str = "undefined-event"

    model_config = {"env_prefix": "GITHUB_", "extra": "ignore", "env_ignore_empty": True}

    @field_validator("repository")
    @classmethod
    def _check_repository(cls, value: str) -> str:
        if not _REPOSITORY_PATTERN.match(value):
            raise ValueError("Expected a string with format 'owner/repo'")
        return value

    @property
    def owner(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.repository.split("/", 1)[1]

    @property
    def run_url(self) -> str:
        return f"{self.server_url.rstrip('/')}/{self.repository}/actions/runs/{self.run_id}"


@dataclass(frozen=True)
class Settings:
    inputs: ActionInputs
    env: RunnerEnvironment
    policy: Policy
    token: str


def _describe(exc: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}"
        for err in exc.errors()
    ]


def load_settings() -> Settings:
    """Read inputs and runner context from the environment.

    Raises ``ConfigurationError`` for invalid or missing values.
    """
    try:
        inputs = ActionInputs()
        env = RunnerEnvironment()
        policy = inputs.to_policy()
    except ValidationError as exc:
        errors = _describe(exc)
        raise ConfigurationError(f"Invalid configuration: {'; '.join(errors)}", errors) from exc

    token = env.token or inputs.github_token
    if not token:
        raise ConfigurationError("A GitHub token is required (GITHUB_TOKEN or the github-token input)")

    logger.debug(
        "Input validation completed: timeout=%ss, poll_interval=%ss, approval_keywords=%s, "
        "rejection_keywords=%s, fail_on_rejection=%s, fail_on_timeout=%s",
        policy.timeout_seconds,
        policy.poll_interval_seconds,
        ",".join(policy.approval_keywords),
        ",".join(policy.rejection_keywords),
        policy.fail_on_rejection,
        policy.fail_on_timeout,
    )
    return Settings(inputs=inputs, env=env, policy=policy, token=token)

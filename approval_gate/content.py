"""Title and body of the approval issue."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from approval_gate.config import ActionInputs, RunnerEnvironment
from approval_gate.models import Policy
from approval_gate.templates import TemplateValue, render_template


@dataclass(frozen=True)
class TicketContent:
    title: str
    body: str


def default_title(env: RunnerEnvironment) -> str:
    return f"Approval Request: {env.workflow}/{env.job}/{env.action}"


def default_body(policy: Policy, env: RunnerEnvironment) -> str:
    approve = ", ".join(policy.approval_keywords)
    reject = ", ".join(policy.rejection_keywords)
    reject_msg = f"comment with `{reject}` or " if reject else ""
    timeout = template_variables(policy, env)["timeout-seconds"]
    return (
        f"**Manual approval required:** "
        f"[`{env.workflow}`/`{env.job}`/`{env.action}`]({env.run_url})\n"
        f"✅ To approve, comment with `{approve}`\n"
        f"❌ To reject, {reject_msg}simply close the issue!\n"
        f"\n"
        f"This request will timeout in {timeout} seconds."
    )


def template_variables(policy: Policy, env: RunnerEnvironment) -> dict[str, TemplateValue]:
    timeout = policy.timeout_seconds
    return {
        "timeout-seconds": int(timeout) if float(timeout).is_integer() else timeout,
        "workflow-name": env.workflow,
        "job-id": env.job,
        "action-id": env.action,
        "actor": env.actor,
        "approval-keywords": list(policy.approval_keywords),
        "rejection-keywords": list(policy.rejection_keywords),
        "run-url": env.run_url,
    }


def build_content(
    inputs: ActionInputs,
    policy: Policy,
    env: RunnerEnvironment,
    environ: Mapping[str, str] | None = None,
) -> TicketContent:
    """Render the issue title and body from the inputs, or use the defaults."""
    variables = template_variables(policy, env)
    title = inputs.issue_title or default_title(env)
    body = inputs.issue_body or default_body(policy, env)
    return TicketContent(
        title=render_template(title, variables, environ),
        body=render_template(body, variables, environ),
    )

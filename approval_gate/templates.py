"""Issue title/body template rendering.

Supported placeholders:
- ``{{ name }}``: replaced with the variable's value
- ``{{ <ul><code>name }}``: list variables formatted with tags
  (``code`` wraps items in backticks, ``ol`` numbers them, ``ul`` bullets
  them; without tags items are comma-joined)
- ``${{ github.prop }}``: replaced with ``GITHUB_<PROP>`` from the
  environment, only for non-sensitive context keys

Unknown placeholders are left untouched.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping, Sequence
from typing import Union

logger = logging.getLogger(__name__)

TemplateValue = Union[str, int, float, bool, Sequence[str], None]

ALLOWED_GITHUB_CONTEXT = frozenset({
    "workflow",
    "job",
    "action",
    "actor",
    "repository",
    "event_name",
    "ref",
    "sha",
    "run_id",
    "run_number",
    "run_attempt",
    "head_ref",
    "base_ref",
    "server_url",
    "api_url",
    "graphql_url",
})

_PLACEHOLDER = re.compile(r"{{\s*([^}]+?)\s*}}")
_VARIABLE_NAME = re.compile(r"([\w-]+)(?![^<]*>)")
_TAG = re.compile(r"<(\w+)")
_GITHUB_CONTEXT = re.compile(r"\${{\s*github\.(\w+)\s*}}")


def _to_text(value: TemplateValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_list(items: Sequence[str], tags: Sequence[str]) -> str:
    if not items:
        return ""
    values = [f"`{item}`" for item in items] if "code" in tags else list(items)
    # ol wins over ul
    if "ol" in tags:
        return "\n".join(f"{i}. {item}" for i, item in enumerate(values, start=1))
    if "ul" in tags:
        return "\n".join(f"- {item}" for item in values)
    return ", ".join(values)


def render_template(
    template: str,
    variables: Mapping[str, TemplateValue],
    environ: Mapping[str, str] | None = None,
) -> str:
    env = os.environ if environ is None else environ

    def _replace_placeholder(match: re.Match[str]) -> str:
        content = match.group(1)
        name_match = _VARIABLE_NAME.search(content)
        if name_match is None:
            return match.group(0)
        name = name_match.group(1)
        if name not in variables or variables[name] is None:
            logger.debug("Template variable not found: %s", name)
            return match.group(0)

        value = variables[name]
        if isinstance(value, str) or not isinstance(value, Sequence):
            return _to_text(value)

        tags = _TAG.findall(content)
        return format_list([str(v) for v in value], tags)

    def _replace_context(match: re.Match[str]) -> str:
        prop = match.group(1).lower()
        if prop not in ALLOWED_GITHUB_CONTEXT:
            logger.warning("Blocked access to potentially sensitive GitHub context variable: %s", prop)
            return match.group(0)
        return env.get(f"GITHUB_{prop.upper()}") or match.group(0)

    # Context expressions first, so their inner "{{ ... }}" is not taken as a variable.
    result = _GITHUB_CONTEXT.sub(_replace_context, template)
    result = _PLACEHOLDER.sub(_replace_placeholder, result)
    logger.debug("Template processing completed (result length: %d)", len(result))
    return result

"""Authoring inputs for the stack declaration.

Values are resolved from, in order of precedence: explicit overrides (CLI
options), CDK context, environment variables, then built-in defaults that
match the production stack.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Callable, Mapping

TAG_KEY = "project"


@dataclass(frozen=True)
class StackSettings:
    """
    Inputs needed to evaluate the stack declaration.

    Attributes:
        stack_name: Name of the CDK stack.
        project: Value of the `project` tag applied to every entity.
        owner: GitHub account that owns the trusted repositories.
        ci_repo: Repository whose workflows write the tables.
        site_repo: Repository of the static site that reads the stats.
        branch: Branch whose workflow runs may assume the roles.
        account: Target AWS account, or None for an env-agnostic stack.
        region: Target AWS region, or None for an env-agnostic stack.
    """

    stack_name: str = "EsmCheckerStack"
    project: str = "esm-checker"
    owner: str = "lannonbr"
    ci_repo: str = "esm-checker"
    site_repo: str = "esm-checker-site"
    branch: str = "main"
    account: str | None = None
    region: str | None = None

    def environment(self) -> tuple[str | None, str | None]:
        """Return the (account, region) pair for the stack environment."""
        return self.account, self.region


# field name -> (CDK context key, environment variable)
_SOURCES: dict[str, tuple[str, str]] = {
    "stack_name": ("stackName", "ESM_INFRA_STACK_NAME"),
    "project": ("project", "ESM_INFRA_PROJECT"),
    "owner": ("owner", "ESM_INFRA_OWNER"),
    "ci_repo": ("ciRepo", "ESM_INFRA_CI_REPO"),
    "site_repo": ("siteRepo", "ESM_INFRA_SITE_REPO"),
    "branch": ("branch", "ESM_INFRA_BRANCH"),
    "account": ("account", "CDK_DEFAULT_ACCOUNT"),
    "region": ("region", "CDK_DEFAULT_REGION"),
}


def _clean(value: object) -> str | None:
    """Return a stripped string, or None for missing/blank values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def load_settings(
    lookup: Callable[[str], object] | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: str | None,
) -> StackSettings:
    """
    Resolve stack settings from overrides, CDK context and environment.

    Args:
        lookup: Context getter, typically `app.node.try_get_context`.
        environ: Environment mapping (defaults to `os.environ`).
        overrides: Explicit values by field name; None/blank values are ignored.

    Returns:
        A StackSettings instance.

    Raises:
        TypeError: If an override names an unknown setting.
    """
    known = {f.name for f in fields(StackSettings)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise TypeError(f"Unknown setting(s): {', '.join(unknown)}")

    env = os.environ if environ is None else environ
    resolved: dict[str, str] = {}

    for name, (context_key, env_var) in _SOURCES.items():
        value = _clean(overrides.get(name))
        if value is None and lookup is not None:
            value = _clean(lookup(context_key))
        if value is None:
            value = _clean(env.get(env_var))
        if value is not None:
            resolved[name] = value

    return replace(StackSettings(), **resolved)

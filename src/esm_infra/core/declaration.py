"""The ESM Checker stack declaration.

This module builds the complete resource graph: the GitHub Actions OIDC
provider reference, the Stats / Package / Audit tables, the roles assumed
by the CI and site workflows, the site build service account, the grants
between them and the outputs consumed downstream.

Evaluation is pure: no CDK constructs are created here and no network calls
are made. Rendering the graph is the job of a provisioning backend.
"""

from __future__ import annotations

import logging

from esm_infra.core.schema import (
    AccessLevel,
    Grant,
    IdentityProviderSpec,
    KeyAttribute,
    KeyType,
    OutputSource,
    OutputSpec,
    PrincipalKind,
    RoleSpec,
    SecondaryIndex,
    ServiceAccountSpec,
    StackSpec,
    TableSpec,
    branch_filter,
)
from esm_infra.core.settings import TAG_KEY, StackSettings

logger = logging.getLogger(__name__)

STATS = "stats"
PACKAGE = "package"
AUDIT = "audit"

PROVIDER_ID = "GitHubProvider"
CI_ROLE_ID = "ESMCheckerDynamoRole"
SITE_ROLE_ID = "ESMCheckerSiteReadRole"
SITE_USER_ID = "ESMCheckerSiteBuildUser"
SITE_KEY_ID = "ESMCheckerSiteBuildAccessKey"

AUDIT_INDEX_NAME = "package_name-timestamp-index"

STACK_DESCRIPTION = "Storage tables and GitHub Actions roles for ESM Checker"


def declare_tables() -> tuple[TableSpec, ...]:
    """Return the Stats, Package and Audit tables."""
    stats = TableSpec(
        logical_id="ESMCheckerDynamoStatsTable",
        name=STATS,
        partition_key=KeyAttribute("year_month", KeyType.STRING),
        sort_key=KeyAttribute("timestamp", KeyType.STRING),
    )
    package = TableSpec(
        logical_id="ESMCheckerDynamoPackageTable",
        name=PACKAGE,
        partition_key=KeyAttribute("package_name", KeyType.STRING),
    )
    audit = TableSpec(
        logical_id="ESMCheckerDynamoAuditTable",
        name=AUDIT,
        partition_key=KeyAttribute("timestamp", KeyType.STRING),
        sort_key=KeyAttribute("package_name_id", KeyType.STRING),
        indexes=(
            SecondaryIndex(
                name=AUDIT_INDEX_NAME,
                partition_key=KeyAttribute("package_name", KeyType.STRING),
                sort_key=KeyAttribute("timestamp", KeyType.STRING),
            ),
        ),
    )
    return stats, package, audit


def declare_roles(settings: StackSettings) -> tuple[RoleSpec, ...]:
    """Return the CI (read-write) and site (read-only) roles."""
    scope = branch_filter(settings.branch)
    return (
        RoleSpec(CI_ROLE_ID, owner=settings.owner, repo=settings.ci_repo, filter=scope),
        RoleSpec(
            SITE_ROLE_ID, owner=settings.owner, repo=settings.site_repo, filter=scope
        ),
    )


def declare_grants() -> tuple[Grant, ...]:
    """Return the permission edges between principals and tables."""
    role, account = PrincipalKind.ROLE, PrincipalKind.SERVICE_ACCOUNT
    return (
        Grant(CI_ROLE_ID, role, STATS, AccessLevel.READ_WRITE),
        Grant(CI_ROLE_ID, role, PACKAGE, AccessLevel.READ_WRITE),
        Grant(CI_ROLE_ID, role, AUDIT, AccessLevel.READ_WRITE),
        Grant(SITE_ROLE_ID, role, STATS, AccessLevel.READ),
        Grant(SITE_USER_ID, account, PACKAGE, AccessLevel.READ),
    )


def declare_outputs(tables: tuple[TableSpec, ...]) -> tuple[OutputSpec, ...]:
    """Return table-name outputs followed by the site build credentials."""
    outputs = [
        OutputSpec(
            logical_id=f"{t.logical_id}Name",
            source=OutputSource.TABLE_NAME,
            target=t.name,
            description=f"Generated name of the {t.name} table",
        )
        for t in tables
    ]
    outputs += [
        OutputSpec(
            logical_id="ESMCheckerSiteBuildAccessKeyId",
            source=OutputSource.ACCESS_KEY_ID,
            target=SITE_USER_ID,
            description="Access key id for the site build",
        ),
        OutputSpec(
            logical_id="ESMCheckerSiteBuildSecretAccessKey",
            source=OutputSource.SECRET_ACCESS_KEY,
            target=SITE_USER_ID,
            description="Secret access key for the site build",
        ),
    ]
    return tuple(outputs)


def build_stack_spec(settings: StackSettings | None = None) -> StackSpec:
    """
    Evaluate the stack declaration.

    Entities are declared in dependency order: identity provider, tables,
    roles, service account, grants, outputs.

    Args:
        settings: Authoring inputs; defaults to the production settings.

    Returns:
        A validated StackSpec.

    Raises:
        DeclarationError: If the inputs produce a structurally invalid graph.
    """
    settings = settings or StackSettings()

    provider = IdentityProviderSpec(PROVIDER_ID)
    tables = declare_tables()
    roles = declare_roles(settings)
    accounts = (ServiceAccountSpec(SITE_USER_ID, access_key_id=SITE_KEY_ID),)
    grants = declare_grants()
    outputs = declare_outputs(tables)

    spec = StackSpec(
        stack_name=settings.stack_name,
        project=settings.project,
        tag_key=TAG_KEY,
        provider=provider,
        tables=tables,
        roles=roles,
        service_accounts=accounts,
        grants=grants,
        outputs=outputs,
    ).validate()

    logger.debug(
        "Declared stack %s: %d table(s), %d role(s), %d grant(s)",
        spec.stack_name,
        len(spec.tables),
        len(spec.roles),
        len(spec.grants),
    )
    return spec

"""Core resource-graph models for the ESM Checker stack.

These models describe the desired cloud resources (tables, roles, service
accounts, grants and outputs) as plain immutable values. They are
intentionally free of AWS CDK types so the declaration can be built,
compared and inspected without synthesizing anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

GITHUB_OIDC_ISSUER = "token.actions.githubusercontent.com"
GITHUB_OIDC_AUDIENCE = "sts.amazonaws.com"


class DeclarationError(ValueError):
    """Raised when the stack declaration is structurally invalid."""


class KeyType(str, Enum):
    """Scalar attribute types usable in a table or index key."""

    STRING = "S"
    NUMBER = "N"
    BINARY = "B"


class BillingMode(str, Enum):
    """Capacity billing for a table."""

    PAY_PER_REQUEST = "PAY_PER_REQUEST"
    PROVISIONED = "PROVISIONED"


class RemovalPolicy(str, Enum):
    """What happens to a resource when its stack is destroyed."""

    DESTROY = "DESTROY"
    RETAIN = "RETAIN"


class AccessLevel(str, Enum):
    """
    Access granted to a principal on a table.

    Values:
        READ: get/query/scan class operations.
        READ_WRITE: READ plus put/update/delete class operations.
    """

    READ = "READ"
    READ_WRITE = "READ_WRITE"


class PrincipalKind(str, Enum):
    """Kind of identity a grant is attached to."""

    ROLE = "ROLE"
    SERVICE_ACCOUNT = "SERVICE_ACCOUNT"


@dataclass(frozen=True)
class KeyAttribute:
    """Name and scalar type of a key attribute."""

    name: str
    type: KeyType = KeyType.STRING

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise DeclarationError("Key attribute name is required.")


@dataclass(frozen=True)
class SecondaryIndex:
    """Alternate key ordering over the items of a table."""

    name: str
    partition_key: KeyAttribute
    sort_key: KeyAttribute | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise DeclarationError("Secondary index name is required.")
        if self.partition_key is None:
            raise DeclarationError(
                f"Secondary index '{self.name}' requires a partition key."
            )


@dataclass(frozen=True)
class TableSpec:
    """
    Desired state of a managed key-value table.

    Attributes:
        logical_id: Construct id used when rendering the table.
        name: Short name used to reference the table from grants and outputs.
        partition_key: Required partition key.
        sort_key: Optional sort key.
        billing_mode: Capacity billing for the table.
        removal_policy: Behavior when the owning stack is destroyed.
        indexes: Global secondary indexes, in declaration order.
    """

    logical_id: str
    name: str
    partition_key: KeyAttribute
    sort_key: KeyAttribute | None = None
    billing_mode: BillingMode = BillingMode.PAY_PER_REQUEST
    removal_policy: RemovalPolicy = RemovalPolicy.DESTROY
    indexes: tuple[SecondaryIndex, ...] = ()

    def __post_init__(self) -> None:
        if not self.logical_id or not self.name:
            raise DeclarationError("Table requires a logical id and a name.")
        if self.partition_key is None:
            raise DeclarationError(f"Table '{self.name}' requires a partition key.")
        seen: set[str] = set()
        for index in self.indexes:
            if index.name in seen:
                raise DeclarationError(
                    f"Table '{self.name}' declares index '{index.name}' twice."
                )
            seen.add(index.name)

    @property
    def key_names(self) -> tuple[str, ...]:
        """Return the primary key attribute names (partition first)."""
        if self.sort_key is None:
            return (self.partition_key.name,)
        return (self.partition_key.name, self.sort_key.name)


@dataclass(frozen=True)
class IdentityProviderSpec:
    """Reference to the pre-existing GitHub Actions OIDC provider."""

    logical_id: str
    issuer: str = GITHUB_OIDC_ISSUER
    audience: str = GITHUB_OIDC_AUDIENCE

    def arn_for(self, account: str, partition: str = "aws") -> str:
        """Return the provider ARN in the given account."""
        return f"arn:{partition}:iam::{account}:oidc-provider/{self.issuer}"


def branch_filter(branch: str) -> str:
    """Return the subject filter matching pushes to a single branch."""
    if not branch or not branch.strip():
        raise DeclarationError("Branch name is required.")
    return f"ref:refs/heads/{branch.strip()}"


@dataclass(frozen=True)
class RoleSpec:
    """
    A role assumable from GitHub Actions runs of one repository.

    The trust policy only admits tokens whose subject is exactly
    `repo:<owner>/<repo>:<filter>`.
    """

    logical_id: str
    owner: str
    repo: str
    filter: str

    def __post_init__(self) -> None:
        for label, value in (("owner", self.owner), ("repo", self.repo)):
            if not value or not value.strip():
                raise DeclarationError(f"Role '{self.logical_id}' requires a {label}.")
            if value != value.strip() or any(c in value for c in "*/:"):
                raise DeclarationError(
                    f"Role '{self.logical_id}' has an invalid {label}: '{value}'."
                )
        if not self.filter or not self.filter.strip():
            raise DeclarationError(
                f"Role '{self.logical_id}' requires a branch filter."
            )
        if self.filter != self.filter.strip() or "*" in self.filter:
            raise DeclarationError(
                f"Role '{self.logical_id}' has an invalid filter: '{self.filter}'."
            )

    @property
    def repository(self) -> str:
        """Return `<owner>/<repo>`."""
        return f"{self.owner}/{self.repo}"

    @property
    def subject(self) -> str:
        """Return the OIDC subject claim this role trusts."""
        return f"repo:{self.repository}:{self.filter}"


@dataclass(frozen=True)
class ServiceAccountSpec:
    """A non-federated user with one long-lived access key."""

    logical_id: str
    access_key_id: str

    def __post_init__(self) -> None:
        if not self.logical_id or not self.access_key_id:
            raise DeclarationError("Service account requires user and key ids.")


@dataclass(frozen=True)
class Grant:
    """Permission edge: `principal` may use `access` on `table`."""

    principal: str
    kind: PrincipalKind
    table: str
    access: AccessLevel


class OutputSource(str, Enum):
    """Generated value an output exposes."""

    TABLE_NAME = "TABLE_NAME"
    ACCESS_KEY_ID = "ACCESS_KEY_ID"
    SECRET_ACCESS_KEY = "SECRET_ACCESS_KEY"


@dataclass(frozen=True)
class OutputSpec:
    """Named scalar surfaced after the stack is created."""

    logical_id: str
    source: OutputSource
    target: str
    description: str | None = None


@dataclass(frozen=True)
class StackSpec:
    """
    Complete resource graph of the stack.

    Built once by `build_stack_spec`; every field is an immutable tuple so
    two evaluations with the same inputs compare equal.
    """

    stack_name: str
    project: str
    tag_key: str
    provider: IdentityProviderSpec
    tables: tuple[TableSpec, ...] = ()
    roles: tuple[RoleSpec, ...] = ()
    service_accounts: tuple[ServiceAccountSpec, ...] = ()
    grants: tuple[Grant, ...] = ()
    outputs: tuple[OutputSpec, ...] = ()

    def table(self, name: str) -> TableSpec:
        """Return the table declared under `name`."""
        for t in self.tables:
            if t.name == name:
                return t
        raise KeyError(name)

    def grants_for(self, principal: str) -> list[Grant]:
        """Return all grants attached to a principal logical id."""
        return [g for g in self.grants if g.principal == principal]

    def validate(self) -> StackSpec:
        """
        Check that the graph is internally consistent.

        Raises:
            DeclarationError: On duplicate construct ids, or grants/outputs
                              that reference undeclared entities.

        Returns:
            The StackSpec itself, so calls can be chained.
        """
        ids = [self.provider.logical_id]
        ids += [t.logical_id for t in self.tables]
        ids += [r.logical_id for r in self.roles]
        for sa in self.service_accounts:
            ids += [sa.logical_id, sa.access_key_id]
        ids += [o.logical_id for o in self.outputs]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise DeclarationError(
                f"Duplicate construct ids: {', '.join(duplicates)}"
            )

        table_names = {t.name for t in self.tables}
        if len(table_names) != len(self.tables):
            raise DeclarationError("Table names must be unique.")
        role_ids = {r.logical_id for r in self.roles}
        account_ids = {sa.logical_id for sa in self.service_accounts}

        for g in self.grants:
            if g.table not in table_names:
                raise DeclarationError(f"Grant references unknown table '{g.table}'.")
            known = role_ids if g.kind == PrincipalKind.ROLE else account_ids
            if g.principal not in known:
                raise DeclarationError(
                    f"Grant references unknown principal '{g.principal}'."
                )

        for o in self.outputs:
            known = table_names if o.source == OutputSource.TABLE_NAME else account_ids
            if o.target not in known:
                raise DeclarationError(
                    f"Output '{o.logical_id}' references unknown '{o.target}'."
                )

        return self

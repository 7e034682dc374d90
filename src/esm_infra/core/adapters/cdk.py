from __future__ import annotations

import logging

from aws_cdk import App, CfnOutput, Environment, Stack, Tags
from aws_cdk import RemovalPolicy as CdkRemovalPolicy
from aws_cdk import aws_dynamodb as dynamodb
from aws_cdk import aws_iam as iam
from constructs import Construct

from esm_infra.core.backend import SynthResult
from esm_infra.core.schema import (
    AccessLevel,
    BillingMode,
    KeyAttribute,
    KeyType,
    OutputSource,
    OutputSpec,
    PrincipalKind,
    RemovalPolicy,
    RoleSpec,
    StackSpec,
    TableSpec,
)

logger = logging.getLogger(__name__)

_ATTRIBUTE_TYPES = {
    KeyType.STRING: dynamodb.AttributeType.STRING,
    KeyType.NUMBER: dynamodb.AttributeType.NUMBER,
    KeyType.BINARY: dynamodb.AttributeType.BINARY,
}

_BILLING_MODES = {
    BillingMode.PAY_PER_REQUEST: dynamodb.BillingMode.PAY_PER_REQUEST,
    BillingMode.PROVISIONED: dynamodb.BillingMode.PROVISIONED,
}

_REMOVAL_POLICIES = {
    RemovalPolicy.DESTROY: CdkRemovalPolicy.DESTROY,
    RemovalPolicy.RETAIN: CdkRemovalPolicy.RETAIN,
}


def _attribute(key: KeyAttribute | None) -> dynamodb.Attribute | None:
    """Convert a key attribute to its CDK form."""
    if key is None:
        return None
    return dynamodb.Attribute(name=key.name, type=_ATTRIBUTE_TYPES[key.type])


def _environment(account: str | None, region: str | None) -> Environment | None:
    """Return a CDK environment, or None for an env-agnostic stack."""
    if not account and not region:
        return None
    return Environment(account=account, region=region)


class EsmCheckerStack(Stack):
    """CDK stack rendering an ESM Checker StackSpec."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        spec: StackSpec,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.spec = spec

        self.provider = iam.OpenIdConnectProvider.from_open_id_connect_provider_arn(
            self,
            spec.provider.logical_id,
            spec.provider.arn_for(self.account, self.partition),
        )

        self.tables: dict[str, dynamodb.Table] = {
            t.name: self._add_table(t) for t in spec.tables
        }
        self.roles: dict[str, iam.Role] = {
            r.logical_id: self._add_role(r) for r in spec.roles
        }

        self.users: dict[str, iam.User] = {}
        self.access_keys: dict[str, iam.AccessKey] = {}
        for sa in spec.service_accounts:
            user = iam.User(self, sa.logical_id)
            self._tag(user)
            self.users[sa.logical_id] = user
            self.access_keys[sa.logical_id] = iam.AccessKey(
                self, sa.access_key_id, user=user
            )

        for g in spec.grants:
            table = self.tables[g.table]
            if g.kind == PrincipalKind.ROLE:
                grantee = self.roles[g.principal]
            else:
                grantee = self.users[g.principal]
            if g.access == AccessLevel.READ_WRITE:
                table.grant_read_write_data(grantee)
            else:
                table.grant_read_data(grantee)
            logger.debug("Granted %s on %s to %s", g.access.value, g.table, g.principal)

        for o in spec.outputs:
            CfnOutput(
                self,
                o.logical_id,
                value=self._output_value(o),
                description=o.description,
            )

    def _tag(self, construct: Construct) -> None:
        Tags.of(construct).add(self.spec.tag_key, self.spec.project)

    def _add_table(self, t: TableSpec) -> dynamodb.Table:
        table = dynamodb.Table(
            self,
            t.logical_id,
            partition_key=_attribute(t.partition_key),
            sort_key=_attribute(t.sort_key),
            billing_mode=_BILLING_MODES[t.billing_mode],
            removal_policy=_REMOVAL_POLICIES[t.removal_policy],
        )
        for index in t.indexes:
            table.add_global_secondary_index(
                index_name=index.name,
                partition_key=_attribute(index.partition_key),
                sort_key=_attribute(index.sort_key),
            )
        self._tag(table)
        logger.debug("Rendered table %s (%s)", t.name, ", ".join(t.key_names))
        return table

    def _add_role(self, r: RoleSpec) -> iam.Role:
        issuer = self.spec.provider.issuer
        principal = iam.OpenIdConnectPrincipal(
            self.provider,
            conditions={
                "StringEquals": {
                    f"{issuer}:aud": self.spec.provider.audience,
                    f"{issuer}:sub": r.subject,
                }
            },
        )
        role = iam.Role(
            self,
            r.logical_id,
            assumed_by=principal,
            description=f"GitHub Actions role for {r.repository} ({r.filter})",
        )
        self._tag(role)
        logger.debug("Rendered role %s trusting %s", r.logical_id, r.subject)
        return role

    def _output_value(self, o: OutputSpec) -> str:
        if o.source == OutputSource.TABLE_NAME:
            return self.tables[o.target].table_name
        key = self.access_keys[o.target]
        if o.source == OutputSource.ACCESS_KEY_ID:
            return key.access_key_id
        return key.secret_access_key.unsafe_unwrap()


class CdkBackend:
    """Provisioning backend that synthesizes the stack with AWS CDK."""

    def __init__(self, description: str | None = None) -> None:
        self.description = description

    def build(
        self,
        app: App,
        spec: StackSpec,
        *,
        account: str | None = None,
        region: str | None = None,
    ) -> EsmCheckerStack:
        """Add the stack for `spec` to an existing CDK app."""
        return EsmCheckerStack(
            app,
            spec.stack_name,
            spec=spec,
            env=_environment(account, region),
            description=self.description,
        )

    def synth(
        self,
        spec: StackSpec,
        *,
        outdir: str | None = None,
        account: str | None = None,
        region: str | None = None,
    ) -> SynthResult:
        """Render `spec` in a fresh CDK app and synthesize the cloud assembly."""
        app = App(outdir=outdir) if outdir else App()
        stack = self.build(app, spec, account=account, region=region)
        assembly = app.synth()
        artifact = assembly.get_stack_artifact(stack.artifact_id)
        logger.debug("Synthesized %s into %s", stack.stack_name, assembly.directory)
        return SynthResult(
            stack_name=stack.stack_name,
            artifact_id=stack.artifact_id,
            directory=assembly.directory,
            template=artifact.template,
        )

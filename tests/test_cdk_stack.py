from dataclasses import replace

import pytest
from aws_cdk import App
from aws_cdk.assertions import Template

from esm_infra.core.adapters.cdk import CdkBackend
from esm_infra.core.declaration import (
    CI_ROLE_ID,
    SITE_ROLE_ID,
    SITE_USER_ID,
    build_stack_spec,
)
from esm_infra.core.schema import AccessLevel, Grant, PrincipalKind

_WRITE_ACTIONS = {
    "dynamodb:PutItem",
    "dynamodb:UpdateItem",
    "dynamodb:DeleteItem",
    "dynamodb:BatchWriteItem",
}


@pytest.fixture(scope="module")
def stack():
    return CdkBackend().build(App(), build_stack_spec())


@pytest.fixture(scope="module")
def template(stack):
    return Template.from_stack(stack)


def _logical_id(stack, construct) -> str:
    return stack.get_logical_id(construct.node.default_child)


def _statements_for(template, key: str, logical_id: str) -> list[dict]:
    """Collect policy statements attached to a role (`Roles`) or user (`Users`)."""
    statements = []
    for policy in template.find_resources("AWS::IAM::Policy").values():
        props = policy["Properties"]
        if {"Ref": logical_id} in props.get(key, []):
            statements += props["PolicyDocument"]["Statement"]
    return statements


def _actions(statements: list[dict]) -> set[str]:
    actions: set[str] = set()
    for s in statements:
        action = s["Action"]
        actions.update([action] if isinstance(action, str) else action)
    return actions


@pytest.mark.parametrize(
    "name, keys",
    [
        ("stats", [("year_month", "HASH"), ("timestamp", "RANGE")]),
        ("package", [("package_name", "HASH")]),
        ("audit", [("timestamp", "HASH"), ("package_name_id", "RANGE")]),
    ],
)
def test_table_key_schema(stack, template, name, keys):
    table_id = _logical_id(stack, stack.tables[name])
    props = template.find_resources("AWS::DynamoDB::Table")[table_id]["Properties"]

    assert [(k["AttributeName"], k["KeyType"]) for k in props["KeySchema"]] == keys
    types = {a["AttributeName"]: a["AttributeType"] for a in props["AttributeDefinitions"]}
    assert all(types[k] == "S" for k, _ in keys)
    assert props["BillingMode"] == "PAY_PER_REQUEST"


def test_audit_table_secondary_index(stack, template):
    table_id = _logical_id(stack, stack.tables["audit"])
    props = template.find_resources("AWS::DynamoDB::Table")[table_id]["Properties"]

    (index,) = props["GlobalSecondaryIndexes"]
    assert index["IndexName"] == "package_name-timestamp-index"
    assert index["KeySchema"] == [
        {"AttributeName": "package_name", "KeyType": "HASH"},
        {"AttributeName": "timestamp", "KeyType": "RANGE"},
    ]


def test_no_table_is_retained(template):
    tables = template.find_resources("AWS::DynamoDB::Table")

    assert len(tables) == 3
    for table in tables.values():
        assert table["DeletionPolicy"] == "Delete"
        assert table["UpdateReplacePolicy"] == "Delete"


def test_identity_provider_is_referenced_not_created(template):
    assert template.find_resources("AWS::IAM::OIDCProvider") == {}
    assert template.find_resources("Custom::AWSCDKOpenIdConnectProvider") == {}


def test_roles_trust_exact_repository_and_branch(stack, template):
    roles = template.find_resources("AWS::IAM::Role")
    expected = {
        CI_ROLE_ID: "repo:lannonbr/esm-checker:ref:refs/heads/main",
        SITE_ROLE_ID: "repo:lannonbr/esm-checker-site:ref:refs/heads/main",
    }

    for role_id, subject in expected.items():
        doc = roles[_logical_id(stack, stack.roles[role_id])]["Properties"][
            "AssumeRolePolicyDocument"
        ]
        (statement,) = doc["Statement"]
        assert statement["Action"] == "sts:AssumeRoleWithWebIdentity"
        assert statement["Condition"] == {
            "StringEquals": {
                "token.actions.githubusercontent.com:aud": "sts.amazonaws.com",
                "token.actions.githubusercontent.com:sub": subject,
            }
        }


def test_ci_role_can_write(stack, template):
    role_id = _logical_id(stack, stack.roles[CI_ROLE_ID])

    assert _WRITE_ACTIONS <= _actions(_statements_for(template, "Roles", role_id))


def test_site_role_cannot_write(stack, template):
    role_id = _logical_id(stack, stack.roles[SITE_ROLE_ID])
    actions = _actions(_statements_for(template, "Roles", role_id))

    assert "dynamodb:Query" in actions
    assert not actions & _WRITE_ACTIONS


def test_service_account_reads_only_the_package_table(stack, template):
    user_id = _logical_id(stack, stack.users[SITE_USER_ID])
    statements = _statements_for(template, "Users", user_id)

    assert {"dynamodb:GetItem", "dynamodb:Scan"} <= _actions(statements)
    assert not _actions(statements) & _WRITE_ACTIONS

    package_id = _logical_id(stack, stack.tables["package"])
    other_ids = [_logical_id(stack, stack.tables[n]) for n in ("stats", "audit")]
    resources = str([s["Resource"] for s in statements])
    assert package_id in resources
    assert not any(other in resources for other in other_ids)


def test_every_taggable_entity_carries_project_tag(template):
    tag = {"Key": "project", "Value": "esm-checker"}
    for rtype in ("AWS::DynamoDB::Table", "AWS::IAM::Role", "AWS::IAM::User"):
        for resource in template.find_resources(rtype).values():
            assert tag in resource["Properties"]["Tags"]


def test_outputs(template):
    outputs = template.find_outputs("*")

    assert set(outputs) == {
        "ESMCheckerDynamoStatsTableName",
        "ESMCheckerDynamoPackageTableName",
        "ESMCheckerDynamoAuditTableName",
        "ESMCheckerSiteBuildAccessKeyId",
        "ESMCheckerSiteBuildSecretAccessKey",
    }
    secret = outputs["ESMCheckerSiteBuildSecretAccessKey"]["Value"]
    assert secret["Fn::GetAtt"][1] == "SecretAccessKey"


def test_rendering_is_deterministic():
    spec = build_stack_spec()
    first = Template.from_stack(CdkBackend().build(App(), spec))
    second = Template.from_stack(CdkBackend().build(App(), spec))

    assert first.to_json() == second.to_json()


def test_backend_synth_writes_assembly(tmp_path):
    result = CdkBackend().synth(build_stack_spec(), outdir=str(tmp_path))

    assert result.stack_name == "EsmCheckerStack"
    assert (tmp_path / f"{result.artifact_id}.template.json").exists()
    assert result.resource_counts()["AWS::DynamoDB::Table"] == 3
    assert result.resource_counts()["AWS::IAM::AccessKey"] == 1


def test_grant_attaches_to_the_declared_kind_of_principal():
    # the CI role id is not a service account, so rendering must not fall back to it
    spec = replace(
        build_stack_spec(),
        grants=(Grant(CI_ROLE_ID, PrincipalKind.SERVICE_ACCOUNT, "package", AccessLevel.READ),),
    )

    with pytest.raises(KeyError, match=CI_ROLE_ID):
        CdkBackend().build(App(), spec)


def test_service_account_grant_attaches_to_user_not_role(stack, template):
    user_id = _logical_id(stack, stack.users[SITE_USER_ID])
    policies = template.find_resources("AWS::IAM::Policy").values()
    user_policies = [p for p in policies if {"Ref": user_id} in p["Properties"].get("Users", [])]

    assert len(user_policies) == 1
    assert "Roles" not in user_policies[0]["Properties"]

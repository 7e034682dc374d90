"""Common CLI options for the CLI."""

import typer

StackNameOpt = typer.Option(
    None,
    "--stack-name",
    help="CDK stack name (env: ESM_INFRA_STACK_NAME)",
)

ProjectOpt = typer.Option(
    None,
    "--project",
    help="Value of the `project` tag (env: ESM_INFRA_PROJECT)",
)

OwnerOpt = typer.Option(
    None,
    "--owner",
    help="GitHub owner of the trusted repositories (env: ESM_INFRA_OWNER)",
)

CiRepoOpt = typer.Option(
    None,
    "--ci-repo",
    help="Repository granted read-write access (env: ESM_INFRA_CI_REPO)",
)

SiteRepoOpt = typer.Option(
    None,
    "--site-repo",
    help="Repository granted read access to stats (env: ESM_INFRA_SITE_REPO)",
)

BranchOpt = typer.Option(
    None,
    "--branch",
    "-b",
    help="Branch whose workflow runs may assume the roles (env: ESM_INFRA_BRANCH)",
)

AccountOpt = typer.Option(
    None,
    "--account",
    help="Target AWS account (env: CDK_DEFAULT_ACCOUNT)",
)

RegionOpt = typer.Option(
    None,
    "--region",
    help="Target AWS region (env: CDK_DEFAULT_REGION)",
)

OutDirOpt = typer.Option(
    "cdk.out",
    "--out",
    "-o",
    help="Directory to write the cloud assembly to",
)

VerboseOpt = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Log each declared and rendered resource",
)

"""Commands for inspecting and synthesizing the ESM Checker stack."""

import typer

from esm_infra.cli.common.context import StackAppContext, build_stack_context
from esm_infra.cli.common.exits import exit_from_exc
from esm_infra.cli.common.options import (
    AccountOpt,
    BranchOpt,
    CiRepoOpt,
    OutDirOpt,
    OwnerOpt,
    ProjectOpt,
    RegionOpt,
    SiteRepoOpt,
    StackNameOpt,
)
from esm_infra.cli.common.output import out

app = typer.Typer(
    help="Inspect and synthesize the stack declaration",
    no_args_is_help=False,
    invoke_without_command=True,
)


@app.callback()
def _init(
    ctx: typer.Context,
    stack_name: str | None = StackNameOpt,
    project: str | None = ProjectOpt,
    owner: str | None = OwnerOpt,
    ci_repo: str | None = CiRepoOpt,
    site_repo: str | None = SiteRepoOpt,
    branch: str | None = BranchOpt,
    account: str | None = AccountOpt,
    region: str | None = RegionOpt,
):
    """Evaluate the declaration once for the invoked command."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)
    ctx.obj = build_stack_context(
        stack_name=stack_name,
        project=project,
        owner=owner,
        ci_repo=ci_repo,
        site_repo=site_repo,
        branch=branch,
        account=account,
        region=region,
    )


@app.command()
def describe(ctx: typer.Context):
    """
    Show the declared tables, roles, grants and outputs.
    """
    appctx: StackAppContext = ctx.obj
    spec = appctx.spec

    account, region = appctx.settings.environment()
    out.header(spec.stack_name)
    out.kv(
        {
            "project": spec.project,
            "account": account or "(env-agnostic)",
            "region": region or "(env-agnostic)",
            "oidc provider": spec.provider.issuer,
        }
    )
    out.tables_table(spec)
    out.roles_table(spec)
    out.grants_table(spec)
    out.outputs_table(spec)


@app.command()
def synth(ctx: typer.Context, out_dir: str = OutDirOpt):
    """
    Synthesize the stack into a cloud assembly.
    """
    appctx: StackAppContext = ctx.obj
    account, region = appctx.settings.environment()

    try:
        with out.status("Synthesizing stack..."):
            result = appctx.backend.synth(
                appctx.spec, outdir=out_dir, account=account, region=region
            )
    except Exception as exc:  # noqa: BLE001
        exit_from_exc(exc, message=f"Synthesis failed: {exc}")

    out.success(f"Synthesized {result.stack_name}")
    out.kv({"artifact": result.artifact_id, "assembly": result.directory})
    out.resource_counts_table(result.resource_counts().items())

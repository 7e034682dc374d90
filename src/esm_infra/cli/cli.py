"""CLI application for the ESM Checker infrastructure."""

import typer

from esm_infra.cli.commands.stack import app as stack_app
from esm_infra.cli.common.options import VerboseOpt
from esm_infra.cli.common.output import configure_logging

app = typer.Typer(
    help="esm-infra - ESM Checker infrastructure tooling",
    no_args_is_help=True,
)


@app.callback()
def _main(verbose: bool = VerboseOpt):
    """Configure logging for every command."""
    configure_logging(verbose)


app.add_typer(stack_app, name="stack", help="Describe / synthesize the CDK stack.")


if __name__ == "__main__":
    app()

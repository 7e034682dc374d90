"""AWS CDK entry point for the ESM Checker stack (see cdk.json)."""

from __future__ import annotations

import aws_cdk as cdk

from esm_infra.core.adapters.cdk import CdkBackend
from esm_infra.core.declaration import STACK_DESCRIPTION, build_stack_spec
from esm_infra.core.settings import load_settings


def main(app: cdk.App | None = None) -> None:
    """Evaluate the declaration from CDK context and synthesize it."""
    if app is None:
        app = cdk.App()
    settings = load_settings(app.node.try_get_context)
    spec = build_stack_spec(settings)
    CdkBackend(description=STACK_DESCRIPTION).build(
        app,
        spec,
        account=settings.account,
        region=settings.region,
    )
    app.synth()


if __name__ == "__main__":
    main()

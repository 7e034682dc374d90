"""Application context management for the CLI."""

from dataclasses import dataclass

from esm_infra.cli.common.exits import die
from esm_infra.core.adapters.cdk import CdkBackend
from esm_infra.core.backend import ProvisioningBackend
from esm_infra.core.declaration import STACK_DESCRIPTION, build_stack_spec
from esm_infra.core.schema import DeclarationError, StackSpec
from esm_infra.core.settings import StackSettings, load_settings


@dataclass
class StackAppContext:
    """Application context holding the evaluated declaration and its backend."""

    settings: StackSettings
    spec: StackSpec
    backend: ProvisioningBackend


def build_stack_context(
    *,
    backend: ProvisioningBackend | None = None,
    **overrides: str | None,
) -> StackAppContext:
    """Resolve settings, evaluate the declaration and pick a backend.

    Args:
        backend: Provisioning backend to use; defaults to CdkBackend.
        overrides: Setting values given on the command line.

    Returns:
        StackAppContext: Context shared by the stack commands.
    """
    settings = load_settings(**overrides)
    try:
        spec = build_stack_spec(settings)
    except DeclarationError as exc:
        die(f"Invalid stack declaration: {exc}", code=1)
    return StackAppContext(
        settings=settings,
        spec=spec,
        backend=backend or CdkBackend(description=STACK_DESCRIPTION),
    )

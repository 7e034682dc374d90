"""Provisioning backend interface.

The declaration never talks to the cloud account. A backend takes the
resource graph and hands it to the orchestrator (AWS CDK by default).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

from esm_infra.core.schema import StackSpec


@dataclass(frozen=True)
class SynthResult:
    """Outcome of synthesizing one stack."""

    stack_name: str
    artifact_id: str
    directory: str
    template: Mapping[str, Any] = field(default_factory=dict)

    def resource_counts(self) -> dict[str, int]:
        """Return the number of resources per CloudFormation type."""
        counts: dict[str, int] = {}
        for resource in (self.template.get("Resources") or {}).values():
            rtype = resource.get("Type", "?")
            counts[rtype] = counts.get(rtype, 0) + 1
        return dict(sorted(counts.items()))


class ProvisioningBackend(Protocol):
    """Interface for turning a StackSpec into orchestrator input."""

    def synth(
        self,
        spec: StackSpec,
        *,
        outdir: str | None = None,
        account: str | None = None,
        region: str | None = None,
    ) -> SynthResult:
        """Render and synthesize the stack described by `spec`."""
        ...

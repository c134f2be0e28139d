from __future__ import annotations

from enum import Enum
import logging
from typing import Sequence

from pgsetup.services.context import ProvisioningContext
from pgsetup.services.errors import StepFailedException
from pgsetup.services.sentinel import SentinelGate
from pgsetup.services.steps import ProvisioningStep

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class ProvisioningPipeline:
    """Runs provisioning steps in order, stopping at the first failure.

    Nothing is rolled back after a failure; every step is safe to rerun, so
    recovery is running the whole program again.
    """

    def __init__(self, steps: Sequence[ProvisioningStep]) -> None:
        self.steps = list(steps)
        self.state = PipelineState.IDLE
        self.current_step: str | None = None
        self.failure: StepFailedException | None = None

    async def run(self, ctx: ProvisioningContext) -> None:
        if self.state is not PipelineState.IDLE:
            raise RuntimeError(f"pipeline already ran (state={self.state.value})")
        self.state = PipelineState.RUNNING
        for step in self.steps:
            self.current_step = step.name
            step_log = ctx.log.bind(step=step.name)
            step_log.debug("Starting provisioning step")
            try:
                await step.run(ctx)
            except Exception as exc:
                self.state = PipelineState.FAILED
                self.failure = StepFailedException(step.name, exc)
                step_log.error("Provisioning step failed: %s", exc)
                raise self.failure from exc
            ctx.completed_steps.append(step.name)
            step_log.debug("Finished provisioning step")
        self.current_step = None
        self.state = PipelineState.SUCCEEDED

    def skip(self) -> None:
        self.state = PipelineState.SKIPPED


async def setup_postgres(ctx: ProvisioningContext, *, gate: SentinelGate, pipeline: ProvisioningPipeline) -> bool:
    """Provision unless the sentinel says it was already done.

    Returns True when the pipeline ran, False when the sentinel skipped it.
    """
    if gate.check():
        ctx.log.info("Found %s, skipping setup", gate.path)
        pipeline.skip()
        return False
    await pipeline.run(ctx)
    return True

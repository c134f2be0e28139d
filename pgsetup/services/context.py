from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from pgsetup.config import Settings
from pgsetup.logging_config import ContextLogger
from pgsetup.models import Flavor, PrimaryDescriptor
from pgsetup.proc import CommandRunner


class Executor(Protocol):
    async def query(self, sql: str) -> list[dict[str, Any]]: ...


@dataclass
class ProvisioningContext:
    """State shared by every step of one provisioning run."""

    primary: PrimaryDescriptor
    settings: Settings
    db: Executor
    log: ContextLogger
    runner: CommandRunner | None = None
    completed_steps: list[str] = field(default_factory=list)

    @property
    def flavor(self) -> Flavor:
        return self.settings.flavor

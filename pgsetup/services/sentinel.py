from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class SentinelGate:
    """Completion marker for a fully provisioned database.

    The marker is an empty file; its existence is the only state this tool
    persists. Reprovisioning the host wipes it and provisioning runs again.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def check(self) -> bool:
        return self.path.exists()

    def commit(self) -> None:
        self.path.write_text("")
        logger.info("Wrote setup sentinel %s", self.path)

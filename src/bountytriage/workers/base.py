"""Base interface for downstream bounty processors."""

from abc import ABC, abstractmethod

from bountytriage.models.bounty import Bounty


class BountyProcessor(ABC):
    """Does the remediation work for one bounty (fix generation, PR creation)."""

    processor_type: str = "unknown"

    @abstractmethod
    async def process(self, bounty: Bounty) -> str:
        """Process an IN_PROGRESS bounty.

        Returns:
            The pull request identifier of the submitted fix.

        Raises:
            Exception: any failure; the consumer marks the bounty FAILED.
        """
        ...

"""Hand-off of normalized CVEs to the monitoring pipeline."""

import logging

from sqlalchemy.exc import IntegrityError

from bountytriage.models.cve import NormalizedCVE
from bountytriage.repositories.cve_repo import CVERepository

logger = logging.getLogger(__name__)


class CVEIntakeService:
    """Stores CVEs the monitoring pipeline has not seen yet."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    async def handle(self, cve: NormalizedCVE) -> bool:
        """Record ``cve``. Returns False if it was already known."""
        async with self.session_factory() as session:
            repo = CVERepository(session)
            if await repo.exists(cve.cve_id):
                logger.debug("CVE %s already exists, skipping", cve.cve_id)
                return False
            try:
                await repo.add(cve)
                await session.commit()
            except IntegrityError:
                # A concurrent delivery stored the same id after our check.
                await session.rollback()
                logger.info("CVE %s was stored concurrently, skipping", cve.cve_id)
                return False

        logger.info(
            "Recorded CVE %s (severity=%s, languages=%s)",
            cve.cve_id, cve.severity, ",".join(cve.affected_languages) or "-",
        )
        return True

"""CVE repository."""

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from bountytriage.db.models.cve import CVERow
from bountytriage.models.cve import NormalizedCVE
from bountytriage.repositories.base import BaseRepository


class CVERepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, CVERow)

    async def get(self, cve_id: str) -> CVERow | None:
        return await self.get_by_id("cve_id", cve_id)

    async def exists(self, cve_id: str) -> bool:
        result = await self.session.execute(select(exists().where(CVERow.cve_id == cve_id)))
        return bool(result.scalar())

    async def add(self, cve: NormalizedCVE) -> CVERow:
        return await self.create(
            cve_id=cve.cve_id,
            description=cve.description,
            severity=cve.severity.value,
            cvss_score=cve.cvss_score,
            published_date=cve.published_date,
            last_modified_date=cve.last_modified_date,
            affected_languages=list(cve.affected_languages),
            affected_products=list(cve.affected_products),
            source=cve.source.value,
        )

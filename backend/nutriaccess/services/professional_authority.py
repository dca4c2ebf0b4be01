import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nutriaccess.errors import InvalidOrExpiredCode
from nutriaccess.models import Professional
from nutriaccess.schemas import ProfessionalSession
from nutriaccess.services.access_codes import mask_code

logger = logging.getLogger(__name__)


async def validate_code(db: AsyncSession, code: Optional[str]) -> Professional:
    """Exact code match on an active professional. Professional codes do not expire."""
    if not code:
        raise InvalidOrExpiredCode()
    professional = (
        await db.execute(select(Professional).where(Professional.access_code == code))
    ).scalar_one_or_none()
    if professional is None or not professional.is_active:
        logger.info("Rejected professional code %s", mask_code(code))
        raise InvalidOrExpiredCode()
    return professional


async def find_by_subject_id(db: AsyncSession, subject_id: str) -> Optional[Professional]:
    return (
        await db.execute(select(Professional).where(Professional.subject_id == subject_id))
    ).scalar_one_or_none()


async def revalidate_session(db: AsyncSession, session: ProfessionalSession) -> Professional:
    """
    세션 쿠키의 전문가 정보를 DB 와 다시 대조합니다.
    비활성화되었거나 코드가 바뀐 전문가의 세션은 더 이상 유효하지 않습니다.
    """
    professional = await db.get(Professional, session.id)
    if (
        professional is None
        or not professional.is_active
        or professional.access_code != session.access_code
    ):
        raise InvalidOrExpiredCode()
    return professional

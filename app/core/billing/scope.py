"""School scoping and paging helpers shared by the billing services."""

from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AccessDenied
from app.core.models import Student


async def get_student_in_school(db: AsyncSession, school_id: int, student_id: int) -> Student:
    """
    Load a student of the active school.
    A student of another school and a missing student are reported the same way.
    """
    student = await db.get(Student, student_id)
    if student is None or student.school_id != school_id:
        raise AccessDenied("Student does not belong to this school")
    return student


def clamp_page(limit: Optional[int], offset: Optional[int]) -> Tuple[int, int]:
    if limit is None:
        limit = settings.default_page_limit
    limit = max(1, min(int(limit), settings.max_page_limit))
    offset = max(0, int(offset or 0))
    return limit, offset

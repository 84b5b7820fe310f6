import logging
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Tuple
from uuid import UUID

from app.exceptions import BusinessLogicError, NotFoundError
from app.models.comment import Comment
from app.models.post import Post
from app.models.report import Report, ReportStatus, ReportTargetType
from app.models.user import User
from app.schemas.report_schemas import ReportCreate, ReportStatusUpdate

logger = logging.getLogger(__name__)

CLOSED_STATUSES = {ReportStatus.RESOLVED.value, ReportStatus.DISMISSED.value}
TARGET_MODELS = {
    ReportTargetType.POST: Post,
    ReportTargetType.USER: User,
    ReportTargetType.COMMENT: Comment,
}


class ReportService:
    @staticmethod
    async def _target_exists(db: AsyncSession, target_type: ReportTargetType, target_id: str) -> bool:
        model = TARGET_MODELS[ReportTargetType(target_type)]
        try:
            key = UUID(target_id)
        except ValueError:
            return False
        result = await db.execute(select(func.count()).select_from(model).where(model.id == key))
        return result.scalar_one() > 0

    @staticmethod
    async def create_report(db: AsyncSession, reporter: User, data: ReportCreate) -> Report:
        if not await ReportService._target_exists(db, data.target_type, data.target_id):
            raise NotFoundError(f"Reported {data.target_type.value} not found")
        if data.target_type == ReportTargetType.USER and data.target_id == str(reporter.id):
            raise BusinessLogicError("You cannot report yourself")

        report = Report(
            reported_by=reporter.id,
            target_type=data.target_type.value,
            target_id=data.target_id,
            reason=data.reason,
            description=data.description,
        )
        db.add(report)
        await db.commit()
        await db.refresh(report)
        logger.info(f"Report {report.id} filed by {reporter.id} against {report.target_type} {report.target_id}")
        return report

    @staticmethod
    async def list_reports(
        db: AsyncSession,
        status: Optional[ReportStatus] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Report], int]:
        query = select(Report)
        if status is not None:
            query = query.where(Report.status == ReportStatus(status).value)
        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
        result = await db.execute(query.order_by(Report.created_at.desc()).offset(offset).limit(limit))
        return list(result.scalars().all()), total

    @staticmethod
    async def update_status(db: AsyncSession, admin: User, report_id: UUID, data: ReportStatusUpdate) -> Report:
        result = await db.execute(select(Report).where(Report.id == report_id))
        report = result.scalar_one_or_none()
        if not report:
            raise NotFoundError("Report not found")

        report.status = data.status.value
        if data.admin_notes is not None:
            report.admin_notes = data.admin_notes
        report.resolved_by = admin.id if report.status in CLOSED_STATUSES else None
        await db.commit()
        await db.refresh(report)
        logger.info(f"Report {report_id} moved to {report.status} by admin {admin.id}")
        return report

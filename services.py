# services.py - Business Logic Services
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from database import Storage
from email_service import EmailDispatcher
from errors import ValidationError, NotFoundError
from models import (
    User, Report, Category, Department, Notification,
    ReportCreate, CategoryCreate, DepartmentCreate, StatusStats, CategoryStats,
    ReportStatus, Priority, NotificationType, UNSET, utcnow,
)
from permissions import Capability, require, is_admin, ensure_can_view_report, ensure_owns_notification
import logging

logger = logging.getLogger(__name__)

MAX_MEDIA_ITEMS = 5
UNCATEGORIZED = "Uncategorized"

# =====================================================
# POST-COMMIT HOOKS
# =====================================================

@dataclass
class ReportEvent:
    """A committed report mutation, handed to every post-commit hook"""
    report: Report
    old_status: str
    new_status: str
    title: str
    message: str
    owner: Optional[User] = None
    notification: Optional[Notification] = None

Hook = Callable[[ReportEvent], None]

def _label(status: str) -> str:
    return status.replace("_", " ")

# =====================================================
# REPORT WORKFLOW
# =====================================================

class ReportWorkflow:
    """Report creation and status transitions"""

    def __init__(self, storage: Storage, dispatcher: EmailDispatcher, hooks: Optional[List[Hook]] = None):
        self.storage = storage
        self.dispatcher = dispatcher
        if hooks is None:
            hooks = [self.record_notification, self.send_status_email]
        self.hooks = list(hooks)

    # -------------------------------------------------
    # Commands
    # -------------------------------------------------

    def create(self, data: ReportCreate, owner_id: str) -> Report:
        """
        Submit a new report

        Status is always forced to pending. If the category is linked to a
        department, the report is routed there regardless of any
        department_id the caller supplied.
        """
        title = (data.title or "").strip()
        description = (data.description or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if not description:
            raise ValidationError("Description is required")
        if len(data.media_urls) > MAX_MEDIA_ITEMS:
            raise ValidationError(f"At most {MAX_MEDIA_ITEMS} media items may be attached")
        self._check_location(data.latitude, data.longitude)

        try:
            priority = Priority(data.priority) if data.priority else Priority.MEDIUM
        except ValueError:
            raise ValidationError(f"Invalid priority. Must be one of: {[p.value for p in Priority]}")

        owner = self.storage.get_user(owner_id)
        if owner is None:
            raise NotFoundError("User not found")

        department_id = data.department_id
        if data.category_id:
            category = self.storage.get_category(data.category_id)
            if category is None:
                raise ValidationError("Unknown category")
            if category.department_id:
                department_id = category.department_id

        now = utcnow()
        report = self.storage.create_report(Report(
            title=title,
            description=description,
            status=ReportStatus.PENDING,
            priority=priority,
            category_id=data.category_id or None,
            department_id=department_id,
            user_id=owner.id,
            latitude=data.latitude,
            longitude=data.longitude,
            address=data.address,
            media_urls=list(data.media_urls),
            is_anonymous=data.is_anonymous,
            created_at=now,
            updated_at=now,
        ))
        logger.info(f"Report {report.id} submitted by user {owner.id}")

        self._run_hooks(ReportEvent(
            report=report,
            old_status="",
            new_status=ReportStatus.PENDING.value,
            title="Report Submitted",
            message=f'Your report "{report.title}" has been submitted and is being reviewed.',
            owner=owner,
        ))
        return report

    def update_status(self, report_id: str, new_status: str, actor: Optional[User], assigned_to_id=UNSET) -> Report:
        """
        Move a report to `new_status` (admin only)

        Passing assigned_to_id, including None or a blank string, replaces
        the assignee; leaving it out keeps the current one.
        """
        require(actor, Capability.ADMIN)

        if isinstance(assigned_to_id, str) and not assigned_to_id.strip():
            assigned_to_id = None

        try:
            status = ReportStatus(new_status)
        except ValueError:
            raise ValidationError(f"Invalid status. Must be one of: {[s.value for s in ReportStatus]}")

        current = self.storage.get_report(report_id)
        if current is None:
            raise NotFoundError("Report not found")
        old_status = current.status.value

        report = self.storage.update_report_status(
            report_id, status, self._next_timestamp(current.updated_at), assigned_to_id
        )
        if report is None:
            raise NotFoundError("Report not found")
        logger.info(f"Report {report_id} status updated: {old_status} -> {status.value}")

        self._run_hooks(ReportEvent(
            report=report,
            old_status=old_status,
            new_status=status.value,
            title="Report Status Updated",
            message=(
                f'Your report "{report.title}" status has been updated '
                f"from {_label(old_status)} to {_label(status.value)}."
            ),
        ))
        return report

    # -------------------------------------------------
    # Queries
    # -------------------------------------------------

    def list_reports(self, actor: Optional[User]) -> List[Report]:
        """All reports for admins, own reports for everyone else"""
        require(actor, Capability.AUTHENTICATED)
        if is_admin(actor):
            return self.storage.get_all_reports()
        return self.storage.get_reports_by_user(actor.id)

    def get_report(self, report_id: str, actor: Optional[User]) -> Report:
        require(actor, Capability.AUTHENTICATED)
        report = self.storage.get_report(report_id)
        if report is None:
            raise NotFoundError("Report not found")
        ensure_can_view_report(actor, report)
        return report

    def reports_for_department(self, department_id: str, actor: Optional[User]) -> List[Report]:
        require(actor, Capability.ADMIN)
        return self.storage.get_reports_by_department(department_id)

    def media_owner_report(self, media_url: str, actor: Optional[User]) -> Report:
        """Report referencing `media_url`, if the actor may see it"""
        require(actor, Capability.AUTHENTICATED)
        report = self.storage.find_report_by_media(media_url)
        if report is None:
            raise NotFoundError("File not found")
        ensure_can_view_report(actor, report)
        return report

    # -------------------------------------------------
    # Hooks
    # -------------------------------------------------

    def record_notification(self, event: ReportEvent) -> None:
        event.notification = self.storage.create_notification(Notification(
            user_id=event.report.user_id,
            report_id=event.report.id,
            type=NotificationType.STATUS_UPDATE,
            title=event.title,
            message=event.message,
        ))
        logger.info(f"Notification created for user {event.report.user_id}")

    def send_status_email(self, event: ReportEvent) -> None:
        owner = event.owner or self.storage.get_user(event.report.user_id)
        if owner is None or not owner.email:
            return

        delivered = self.dispatcher.send_status_notification(
            owner.email, event.report.title, event.old_status, event.new_status
        )
        if not delivered:
            logger.error(f"Status email for report {event.report.id} was not delivered")
        elif self.dispatcher.enabled and event.notification is not None:
            self.storage.mark_notification_emailed(event.notification.id)

    def _run_hooks(self, event: ReportEvent) -> None:
        for hook in self.hooks:
            try:
                hook(event)
            except Exception as e:
                name = getattr(hook, "__name__", repr(hook))
                logger.error(f"Post-commit hook {name} failed for report {event.report.id}: {e}")

    # -------------------------------------------------
    # Helpers
    # -------------------------------------------------

    @staticmethod
    def _check_location(latitude: Optional[float], longitude: Optional[float]) -> None:
        if latitude is None and longitude is None:
            return
        if latitude is None or longitude is None:
            raise ValidationError("Latitude and longitude must be supplied together")
        if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
            raise ValidationError("Latitude or longitude out of range")

    @staticmethod
    def _next_timestamp(previous: datetime) -> datetime:
        """Current time, nudged past `previous` so updated_at strictly increases"""
        now = utcnow()
        if previous.tzinfo is None:
            previous = previous.replace(tzinfo=now.tzinfo)
        if now <= previous:
            now = previous + timedelta(microseconds=1)
        return now

# =====================================================
# CATEGORIES & DEPARTMENTS
# =====================================================

class CatalogService:
    """Category and department management"""

    def __init__(self, storage: Storage):
        self.storage = storage

    def list_categories(self) -> List[Category]:
        return self.storage.get_all_categories()

    def create_category(self, data: CategoryCreate, actor: Optional[User]) -> Category:
        require(actor, Capability.ADMIN)
        name = data.name.strip()
        if not name:
            raise ValidationError("Category name is required")
        category = self.storage.create_category(Category(
            name=name,
            description=data.description,
            department_id=data.department_id or None,
        ))
        logger.info(f"Category {category.id} created: {name}")
        return category

    def list_departments(self, actor: Optional[User]) -> List[Department]:
        require(actor, Capability.ADMIN)
        return self.storage.get_all_departments()

    def create_department(self, data: DepartmentCreate, actor: Optional[User]) -> Department:
        require(actor, Capability.ADMIN)
        name = data.name.strip()
        if not name:
            raise ValidationError("Department name is required")
        department = self.storage.create_department(Department(
            name=name,
            email=data.email,
            phone=data.phone,
            description=data.description,
        ))
        logger.info(f"Department {department.id} created: {name}")
        return department

# =====================================================
# NOTIFICATIONS
# =====================================================

class NotificationService:

    def __init__(self, storage: Storage):
        self.storage = storage

    def list_for(self, actor: Optional[User]) -> List[Notification]:
        """Caller's notifications, newest first"""
        require(actor, Capability.AUTHENTICATED)
        return self.storage.get_user_notifications(actor.id)

    def mark_read(self, notification_id: str, actor: Optional[User]) -> Notification:
        require(actor, Capability.AUTHENTICATED)
        notification = self.storage.get_notification(notification_id)
        if notification is None:
            raise NotFoundError("Notification not found")
        ensure_owns_notification(actor, notification)
        if notification.is_read:
            return notification

        updated = self.storage.mark_notification_read(notification_id)
        if updated is None:
            raise NotFoundError("Notification not found")
        return updated

# =====================================================
# ANALYTICS
# =====================================================

class AnalyticsService:
    """Admin dashboard aggregates, always computed from current data"""

    def __init__(self, storage: Storage):
        self.storage = storage

    def stats(self, actor: Optional[User]) -> StatusStats:
        require(actor, Capability.ADMIN)
        counts = self.storage.count_reports_by_status()
        return StatusStats(
            pending=counts.get(ReportStatus.PENDING.value, 0),
            in_progress=counts.get(ReportStatus.IN_PROGRESS.value, 0),
            resolved=counts.get(ReportStatus.RESOLVED.value, 0),
            total=sum(counts.values()),
        )

    def reports_by_category(self, actor: Optional[User]) -> List[CategoryStats]:
        require(actor, Capability.ADMIN)
        counts = self.storage.count_reports_by_category()
        names = {c.id: c.name for c in self.storage.get_all_categories()}
        return [
            CategoryStats(category=names.get(category_id, UNCATEGORIZED) if category_id else UNCATEGORIZED, count=count)
            for category_id, count in counts.items()
        ]

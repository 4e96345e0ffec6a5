# database.py - Persistence layer and schema definitions
import threading
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional
from models import (
    User, Report, Category, Department, Notification,
    ReportStatus, UNSET,
)
from errors import ConflictError
import logging

logger = logging.getLogger(__name__)


class Storage(ABC):
    """Typed accessors over users, reports, categories, departments and notifications"""

    # User operations
    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, user: User) -> User: ...

    # Report operations
    @abstractmethod
    def create_report(self, report: Report) -> Report: ...

    @abstractmethod
    def get_report(self, report_id: str) -> Optional[Report]: ...

    @abstractmethod
    def get_reports_by_user(self, user_id: str) -> List[Report]: ...

    @abstractmethod
    def get_all_reports(self) -> List[Report]: ...

    @abstractmethod
    def update_report_status(
        self,
        report_id: str,
        status: ReportStatus,
        updated_at: datetime,
        assigned_to_id=UNSET,
    ) -> Optional[Report]:
        """Returns None when no report matched"""

    @abstractmethod
    def get_reports_by_department(self, department_id: str) -> List[Report]: ...

    @abstractmethod
    def find_report_by_media(self, media_url: str) -> Optional[Report]: ...

    # Category operations
    @abstractmethod
    def get_category(self, category_id: str) -> Optional[Category]: ...

    @abstractmethod
    def get_all_categories(self) -> List[Category]: ...

    @abstractmethod
    def create_category(self, category: Category) -> Category: ...

    # Department operations
    @abstractmethod
    def get_all_departments(self) -> List[Department]: ...

    @abstractmethod
    def create_department(self, department: Department) -> Department: ...

    # Analytics
    @abstractmethod
    def count_reports_by_status(self) -> Dict[str, int]:
        """Report counts for each status present in the data"""

    @abstractmethod
    def count_reports_by_category(self) -> Dict[Optional[str], int]:
        """Report counts keyed by category_id (None for uncategorized)"""

    # Notifications
    @abstractmethod
    def create_notification(self, notification: Notification) -> Notification: ...

    @abstractmethod
    def get_notification(self, notification_id: str) -> Optional[Notification]: ...

    @abstractmethod
    def get_user_notifications(self, user_id: str) -> List[Notification]: ...

    @abstractmethod
    def mark_notification_read(self, notification_id: str) -> Optional[Notification]: ...

    @abstractmethod
    def mark_notification_emailed(self, notification_id: str) -> None: ...


# =====================================================
# IN-MEMORY STORAGE
# =====================================================

class MemoryStorage(Storage):
    """Process-local storage for development and tests"""

    def __init__(self):
        self._lock = threading.Lock()
        self._users: Dict[str, User] = {}
        self._reports: Dict[str, Report] = {}
        self._categories: Dict[str, Category] = {}
        self._departments: Dict[str, Department] = {}
        self._notifications: Dict[str, Notification] = {}

    @staticmethod
    def _copy(record):
        return record.model_copy(deep=True) if record is not None else None

    def _newest_first(self, records):
        # insertion order breaks timestamp ties
        indexed = sorted(enumerate(records), key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        return [self._copy(r) for _, r in indexed]

    def get_user(self, user_id):
        with self._lock:
            return self._copy(self._users.get(user_id))

    def get_user_by_username(self, username):
        with self._lock:
            return self._copy(next((u for u in self._users.values() if u.username == username), None))

    def get_user_by_email(self, email):
        with self._lock:
            return self._copy(next((u for u in self._users.values() if u.email == email), None))

    def create_user(self, user):
        with self._lock:
            for existing in self._users.values():
                if existing.username == user.username:
                    raise ConflictError("Username already exists")
                if existing.email == user.email:
                    raise ConflictError("Email already registered")
            self._users[user.id] = self._copy(user)
            return self._copy(user)

    def create_report(self, report):
        with self._lock:
            self._reports[report.id] = self._copy(report)
            return self._copy(report)

    def get_report(self, report_id):
        with self._lock:
            return self._copy(self._reports.get(report_id))

    def get_reports_by_user(self, user_id):
        with self._lock:
            return self._newest_first(r for r in self._reports.values() if r.user_id == user_id)

    def get_all_reports(self):
        with self._lock:
            return self._newest_first(self._reports.values())

    def update_report_status(self, report_id, status, updated_at, assigned_to_id=UNSET):
        with self._lock:
            report = self._reports.get(report_id)
            if report is None:
                return None
            report.status = ReportStatus(status)
            report.updated_at = updated_at
            if assigned_to_id is not UNSET:
                report.assigned_to_id = assigned_to_id
            return self._copy(report)

    def get_reports_by_department(self, department_id):
        with self._lock:
            return self._newest_first(r for r in self._reports.values() if r.department_id == department_id)

    def find_report_by_media(self, media_url):
        with self._lock:
            return self._copy(next((r for r in self._reports.values() if media_url in r.media_urls), None))

    def get_category(self, category_id):
        with self._lock:
            return self._copy(self._categories.get(category_id))

    def get_all_categories(self):
        with self._lock:
            return [self._copy(c) for c in self._categories.values()]

    def create_category(self, category):
        with self._lock:
            self._categories[category.id] = self._copy(category)
            return self._copy(category)

    def get_all_departments(self):
        with self._lock:
            return [self._copy(d) for d in self._departments.values()]

    def create_department(self, department):
        with self._lock:
            self._departments[department.id] = self._copy(department)
            return self._copy(department)

    def count_reports_by_status(self):
        with self._lock:
            return dict(Counter(r.status.value for r in self._reports.values()))

    def count_reports_by_category(self):
        with self._lock:
            return dict(Counter(r.category_id for r in self._reports.values()))

    def create_notification(self, notification):
        with self._lock:
            self._notifications[notification.id] = self._copy(notification)
            return self._copy(notification)

    def get_notification(self, notification_id):
        with self._lock:
            return self._copy(self._notifications.get(notification_id))

    def get_user_notifications(self, user_id):
        with self._lock:
            return self._newest_first(n for n in self._notifications.values() if n.user_id == user_id)

    def mark_notification_read(self, notification_id):
        with self._lock:
            notification = self._notifications.get(notification_id)
            if notification is None:
                return None
            notification.is_read = True
            return self._copy(notification)

    def mark_notification_emailed(self, notification_id):
        with self._lock:
            notification = self._notifications.get(notification_id)
            if notification is not None:
                notification.sent_via_email = True


# =====================================================
# SUPABASE STORAGE
# =====================================================

class SupabaseStorage(Storage):
    """Storage backed by Supabase (PostgREST) tables"""

    def __init__(self, client):
        self.client = client

    @staticmethod
    def _row(record) -> dict:
        return record.model_dump(mode="json")

    @staticmethod
    def _first(response, model):
        if not response.data:
            return None
        return model.model_validate(response.data[0])

    @staticmethod
    def _reports(rows) -> List[Report]:
        reports = []
        for row in rows:
            row["media_urls"] = row.get("media_urls") or []
            reports.append(Report.model_validate(row))
        return reports

    def _report(self, response) -> Optional[Report]:
        reports = self._reports(response.data or [])
        return reports[0] if reports else None

    def get_user(self, user_id):
        response = self.client.table("users").select("*").eq("id", user_id).execute()
        return self._first(response, User)

    def get_user_by_username(self, username):
        response = self.client.table("users").select("*").eq("username", username).execute()
        return self._first(response, User)

    def get_user_by_email(self, email):
        response = self.client.table("users").select("*").eq("email", email).execute()
        return self._first(response, User)

    def create_user(self, user):
        response = self.client.table("users").insert(self._row(user)).execute()
        return self._first(response, User)

    def create_report(self, report):
        response = self.client.table("reports").insert(self._row(report)).execute()
        return self._report(response)

    def get_report(self, report_id):
        response = self.client.table("reports").select("*").eq("id", report_id).execute()
        return self._report(response)

    def get_reports_by_user(self, user_id):
        response = self.client.table("reports").select("*") \
            .eq("user_id", user_id) \
            .order("created_at", desc=True) \
            .execute()
        return self._reports(response.data)

    def get_all_reports(self):
        response = self.client.table("reports").select("*").order("created_at", desc=True).execute()
        return self._reports(response.data)

    def update_report_status(self, report_id, status, updated_at, assigned_to_id=UNSET):
        update_data = {
            "status": ReportStatus(status).value,
            "updated_at": updated_at.isoformat(),
        }
        if assigned_to_id is not UNSET:
            update_data["assigned_to_id"] = assigned_to_id

        response = self.client.table("reports").update(update_data).eq("id", report_id).execute()
        return self._report(response)

    def get_reports_by_department(self, department_id):
        response = self.client.table("reports").select("*") \
            .eq("department_id", department_id) \
            .order("created_at", desc=True) \
            .execute()
        return self._reports(response.data)

    def find_report_by_media(self, media_url):
        response = self.client.table("reports").select("*").contains("media_urls", [media_url]).limit(1).execute()
        return self._report(response)

    def get_category(self, category_id):
        response = self.client.table("categories").select("*").eq("id", category_id).execute()
        return self._first(response, Category)

    def get_all_categories(self):
        response = self.client.table("categories").select("*").execute()
        return [Category.model_validate(row) for row in response.data]

    def create_category(self, category):
        response = self.client.table("categories").insert(self._row(category)).execute()
        return self._first(response, Category)

    def get_all_departments(self):
        response = self.client.table("departments").select("*").execute()
        return [Department.model_validate(row) for row in response.data]

    def create_department(self, department):
        response = self.client.table("departments").insert(self._row(department)).execute()
        return self._first(response, Department)

    def count_reports_by_status(self):
        response = self.client.table("reports").select("status").execute()
        return dict(Counter(row["status"] for row in response.data))

    def count_reports_by_category(self):
        response = self.client.table("reports").select("category_id").execute()
        return dict(Counter(row.get("category_id") for row in response.data))

    def create_notification(self, notification):
        response = self.client.table("notifications").insert(self._row(notification)).execute()
        return self._first(response, Notification)

    def get_notification(self, notification_id):
        response = self.client.table("notifications").select("*").eq("id", notification_id).execute()
        return self._first(response, Notification)

    def get_user_notifications(self, user_id):
        response = self.client.table("notifications").select("*") \
            .eq("user_id", user_id) \
            .order("created_at", desc=True) \
            .execute()
        return [Notification.model_validate(row) for row in response.data]

    def mark_notification_read(self, notification_id):
        response = self.client.table("notifications").update({"is_read": True}).eq("id", notification_id).execute()
        return self._first(response, Notification)

    def mark_notification_emailed(self, notification_id):
        self.client.table("notifications").update({"sent_via_email": True}).eq("id", notification_id).execute()


def create_storage(settings) -> Storage:
    """Build the storage backend selected by STORAGE_BACKEND"""
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "supabase":
        from supabase import create_client
        client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SECRET)
        logger.info("Using Supabase storage")
        return SupabaseStorage(client)
    if backend == "memory":
        logger.warning("Using in-memory storage - data is lost on restart")
        return MemoryStorage()
    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")


# SQL Schema Creation Scripts
def create_tables_sql():
    """
    SQL scripts to create all tables.
    Run these in Supabase SQL Editor.
    """
    return """
    -- Enable UUID generation
    CREATE EXTENSION IF NOT EXISTS "pgcrypto";

    -- Users Table
    CREATE TABLE IF NOT EXISTS users (
        id VARCHAR PRIMARY KEY DEFAULT gen_random_uuid(),
        username TEXT UNIQUE NOT NULL,
        email TEXT UNIQUE NOT NULL,
        password TEXT NOT NULL,
        first_name TEXT,
        last_name TEXT,
        role TEXT NOT NULL DEFAULT 'citizen', -- citizen, admin, staff
        created_at TIMESTAMPTZ DEFAULT NOW()
    );

    -- Departments Table
    CREATE TABLE IF NOT EXISTS departments (
        id VARCHAR PRIMARY KEY DEFAULT gen_random_uuid(),
        name TEXT NOT NULL,
        email TEXT,
        phone TEXT,
        description TEXT,
        created_at TIMESTAMPTZ DEFAULT NOW()
    );

    -- Categories Table
    CREATE TABLE IF NOT EXISTS categories (
        id VARCHAR PRIMARY KEY DEFAULT gen_random_uuid(),
        name TEXT NOT NULL CHECK (length(name) > 0),
        description TEXT,
        department_id VARCHAR REFERENCES departments(id),
        created_at TIMESTAMPTZ DEFAULT NOW()
    );

    -- Reports Table
    CREATE TABLE IF NOT EXISTS reports (
        id VARCHAR PRIMARY KEY DEFAULT gen_random_uuid(),
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending', -- pending, in_progress, resolved
        priority TEXT DEFAULT 'medium', -- low, medium, high
        category_id VARCHAR REFERENCES categories(id),
        department_id VARCHAR REFERENCES departments(id),
        user_id VARCHAR NOT NULL REFERENCES users(id),
        assigned_to_id VARCHAR REFERENCES users(id),
        latitude REAL,
        longitude REAL,
        address TEXT,
        media_urls TEXT[],
        is_anonymous BOOLEAN DEFAULT FALSE,
        created_at TIMESTAMPTZ DEFAULT NOW(),
        updated_at TIMESTAMPTZ DEFAULT NOW()
    );

    -- Notifications Table
    CREATE TABLE IF NOT EXISTS notifications (
        id VARCHAR PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id VARCHAR NOT NULL REFERENCES users(id),
        report_id VARCHAR REFERENCES reports(id),
        type TEXT NOT NULL, -- status_update, assignment, resolution
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        is_read BOOLEAN DEFAULT FALSE,
        sent_via_email BOOLEAN DEFAULT FALSE,
        created_at TIMESTAMPTZ DEFAULT NOW()
    );

    -- Create indexes for performance
    CREATE INDEX IF NOT EXISTS idx_reports_user ON reports(user_id);
    CREATE INDEX IF NOT EXISTS idx_reports_status ON reports(status);
    CREATE INDEX IF NOT EXISTS idx_reports_department ON reports(department_id);
    CREATE INDEX IF NOT EXISTS idx_reports_category ON reports(category_id);
    CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, is_read);
    """

# Helper function to check if tables exist
def check_database_setup(storage: Storage) -> bool:
    """Check if the storage backend is reachable"""
    try:
        storage.get_all_departments()
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database setup check failed: {e}")
        logger.info("Please run the SQL scripts in Supabase SQL Editor")
        return False

if __name__ == "__main__":
    print("Database Schema SQL:")
    print(create_tables_sql())
    print("\n" + "="*80)
    print("Copy the above SQL and run it in your Supabase SQL Editor")
    print("="*80)

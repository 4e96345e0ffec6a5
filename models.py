# models.py - Pydantic models and schemas
import uuid
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime, timezone
from enum import Enum

def new_id() -> str:
    return str(uuid.uuid4())

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class _Unset:
    """Marks an optional argument the caller did not pass (None is a real value)"""
    def __repr__(self):
        return "UNSET"

UNSET = _Unset()

# Enums
class ReportStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"

class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

class UserRole(str, Enum):
    CITIZEN = "citizen"
    STAFF = "staff"
    ADMIN = "admin"

class NotificationType(str, Enum):
    STATUS_UPDATE = "status_update"
    ASSIGNMENT = "assignment"
    RESOLUTION = "resolution"

# Records
class User(BaseModel):
    id: str = Field(default_factory=new_id)
    username: str
    email: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.CITIZEN
    created_at: datetime = Field(default_factory=utcnow)

class Department(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

class Category(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None
    department_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

class Report(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: str
    status: ReportStatus = ReportStatus.PENDING
    priority: Priority = Priority.MEDIUM
    category_id: Optional[str] = None
    department_id: Optional[str] = None
    user_id: str
    assigned_to_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    media_urls: List[str] = Field(default_factory=list)
    is_anonymous: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

class Notification(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    report_id: Optional[str] = None
    type: NotificationType
    title: str
    message: str
    is_read: bool = False
    sent_via_email: bool = False
    created_at: datetime = Field(default_factory=utcnow)

# User Schemas
class UserCreate(BaseModel):
    username: str = Field(..., min_length=3)
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None

class UserLogin(BaseModel):
    username: str
    password: str

class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    role: UserRole
    created_at: datetime

class Token(BaseModel):
    access_token: str
    token_type: str

class RegisterResponse(BaseModel):
    user: UserResponse
    access_token: str
    token_type: str

# Report Schemas
class ReportCreate(BaseModel):
    """Submission input. Field checks happen in the workflow so they surface as ValidationError."""
    title: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[str] = None
    department_id: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    priority: Optional[str] = None
    is_anonymous: bool = False
    status: Optional[str] = None  # ignored, new reports are always pending
    media_urls: List[str] = Field(default_factory=list)

class StatusUpdate(BaseModel):
    status: str
    assigned_to_id: Optional[str] = None

# Category / Department Schemas
class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    department_id: Optional[str] = None

class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None

# Analytics Schemas
class StatusStats(BaseModel):
    pending: int = 0
    in_progress: int = 0
    resolved: int = 0
    total: int = 0

class CategoryStats(BaseModel):
    category: str
    count: int

# app.py - CivicReport API Application
from fastapi import FastAPI, APIRouter, File, UploadFile, Form, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from typing import Optional, List
from datetime import datetime, timezone
import logging

# Local imports
from config import settings
from database import Storage, create_storage, check_database_setup
from email_service import EmailDispatcher
from errors import CivicReportError, AuthenticationError, ConflictError, ValidationError
from auth import (
    get_password_hash, authenticate_user, token_for, seed_admin,
    get_storage, get_current_user, get_admin_user,
)
from models import (
    User, UserCreate, UserLogin, UserResponse, Token, RegisterResponse,
    Report, ReportCreate, StatusUpdate, Category, CategoryCreate,
    Department, DepartmentCreate, Notification, StatusStats, CategoryStats,
    UNSET,
)
from permissions import is_admin
from services import ReportWorkflow, CatalogService, NotificationService, AnalyticsService
from storage import MediaStore, MediaFile

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Service lookups (wired in create_app)
def get_workflow(request: Request) -> ReportWorkflow:
    return request.app.state.workflow

def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog

def get_notifications(request: Request) -> NotificationService:
    return request.app.state.notifications

def get_analytics(request: Request) -> AnalyticsService:
    return request.app.state.analytics

def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media_store

def _user_response(user: User) -> UserResponse:
    return UserResponse(**user.model_dump(exclude={"password"}))

def _parse_coordinate(name: str, value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number")

router = APIRouter()

# =====================================================
# HEALTH CHECK
# =====================================================

@router.get("/", tags=["Health"])
def root():
    """API health check"""
    return {
        "status": "online",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

@router.get("/health", tags=["Health"])
def health_check(storage: Storage = Depends(get_storage)):
    """Detailed health check"""
    return {
        "status": "healthy",
        "database": "connected" if check_database_setup(storage) else "unavailable",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

# =====================================================
# AUTHENTICATION ENDPOINTS
# =====================================================

@router.post("/api/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED, tags=["Authentication"])
async def register_user(user: UserCreate, storage: Storage = Depends(get_storage)):
    """
    Register new citizen account

    - **username**: Unique, at least 3 characters
    - **email**: Unique, valid email address
    - **password**: Minimum 6 characters
    """
    if storage.get_user_by_username(user.username):
        raise ConflictError("Username already exists")
    if storage.get_user_by_email(user.email):
        raise ConflictError("Email already registered")

    created = storage.create_user(User(
        username=user.username,
        email=user.email,
        password=get_password_hash(user.password),
        first_name=user.first_name,
        last_name=user.last_name,
    ))
    logger.info(f"User registered: {created.username}")

    return RegisterResponse(user=_user_response(created), access_token=token_for(created), token_type="bearer")

@router.post("/api/login", response_model=Token, tags=["Authentication"])
async def login(user: UserLogin, storage: Storage = Depends(get_storage)):
    """Login user and get access token"""
    authenticated_user = authenticate_user(storage, user.username, user.password)
    if not authenticated_user:
        raise AuthenticationError("Incorrect username or password")
    return Token(access_token=token_for(authenticated_user), token_type="bearer")

@router.post("/api/token", response_model=Token, tags=["Authentication"])
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    storage: Storage = Depends(get_storage),
):
    """OAuth2 compatible token endpoint"""
    authenticated_user = authenticate_user(storage, form_data.username, form_data.password)
    if not authenticated_user:
        raise AuthenticationError("Incorrect username or password")
    return Token(access_token=token_for(authenticated_user), token_type="bearer")

@router.get("/api/user", response_model=UserResponse, tags=["Authentication"])
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current authenticated user information"""
    return _user_response(current_user)

# =====================================================
# REPORTS
# =====================================================

@router.post("/api/reports", response_model=Report, status_code=status.HTTP_201_CREATED, tags=["Reports"])
async def create_report(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None),
    department_id: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    latitude: Optional[str] = Form(None),
    longitude: Optional[str] = Form(None),
    priority: Optional[str] = Form(None),
    is_anonymous: bool = Form(False),
    status_field: Optional[str] = Form(None, alias="status"),
    media: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    workflow: ReportWorkflow = Depends(get_workflow),
    media_store: MediaStore = Depends(get_media_store),
):
    """
    Submit a new civic issue report

    - **title** / **description**: Required
    - **category_id**: Optional, routes the report to the category's department
    - **latitude** / **longitude**: Optional GPS pair
    - **media**: Up to 5 image or video files

    Uploaded files are stored all-or-nothing; they are removed again if the
    report is rejected.
    """
    uploads = media or []
    media_store.check_count(len(uploads))

    # Reading one byte past the limit is enough for validate() to reject it
    files = []
    for upload in uploads:
        files.append(MediaFile(
            filename=upload.filename or "",
            content_type=upload.content_type or "",
            content=await upload.read(media_store.max_bytes + 1),
        ))

    data = ReportCreate(
        title=title,
        description=description,
        category_id=category_id or None,
        department_id=department_id or None,
        address=address,
        latitude=_parse_coordinate("latitude", latitude),
        longitude=_parse_coordinate("longitude", longitude),
        priority=priority or None,
        is_anonymous=is_anonymous,
        status=status_field,
    )

    media_urls = media_store.save_all(files)
    try:
        data.media_urls = media_urls
        return workflow.create(data, current_user.id)
    except Exception:
        media_store.discard(media_urls)
        raise

@router.get("/api/reports", response_model=List[Report], tags=["Reports"])
async def list_reports(
    current_user: User = Depends(get_current_user),
    workflow: ReportWorkflow = Depends(get_workflow),
):
    """All reports for admins, the caller's own reports otherwise"""
    return workflow.list_reports(current_user)

@router.get("/api/reports/{report_id}", response_model=Report, tags=["Reports"])
async def get_report(
    report_id: str,
    current_user: User = Depends(get_current_user),
    workflow: ReportWorkflow = Depends(get_workflow),
):
    """Get a report (owner or admin)"""
    return workflow.get_report(report_id, current_user)

@router.patch("/api/reports/{report_id}/status", response_model=Report, tags=["Reports"])
async def update_report_status(
    report_id: str,
    update: StatusUpdate,
    current_user: User = Depends(get_admin_user),
    workflow: ReportWorkflow = Depends(get_workflow),
):
    """
    Update report status (Admin only)

    Valid statuses: pending, in_progress, resolved. Include
    **assigned_to_id** (null or "" to unassign) to change the assignee.
    """
    assigned_to_id = update.assigned_to_id if "assigned_to_id" in update.model_fields_set else UNSET
    return workflow.update_status(report_id, update.status, current_user, assigned_to_id)

# =====================================================
# CATEGORIES & DEPARTMENTS
# =====================================================

@router.get("/api/categories", response_model=List[Category], tags=["Reference Data"])
async def list_categories(catalog: CatalogService = Depends(get_catalog)):
    """Get all categories"""
    return catalog.list_categories()

@router.post("/api/categories", response_model=Category, status_code=status.HTTP_201_CREATED, tags=["Reference Data"])
async def create_category(
    category: CategoryCreate,
    current_user: User = Depends(get_admin_user),
    catalog: CatalogService = Depends(get_catalog),
):
    """Create category (Admin only)"""
    return catalog.create_category(category, current_user)

@router.get("/api/departments", response_model=List[Department], tags=["Reference Data"])
async def list_departments(
    current_user: User = Depends(get_admin_user),
    catalog: CatalogService = Depends(get_catalog),
):
    """Get all departments (Admin only)"""
    return catalog.list_departments(current_user)

@router.post("/api/departments", response_model=Department, status_code=status.HTTP_201_CREATED, tags=["Reference Data"])
async def create_department(
    department: DepartmentCreate,
    current_user: User = Depends(get_admin_user),
    catalog: CatalogService = Depends(get_catalog),
):
    """Create department (Admin only)"""
    return catalog.create_department(department, current_user)

@router.get("/api/departments/{department_id}/reports", response_model=List[Report], tags=["Reference Data"])
async def list_department_reports(
    department_id: str,
    current_user: User = Depends(get_admin_user),
    workflow: ReportWorkflow = Depends(get_workflow),
):
    """Reports routed to a department (Admin only)"""
    return workflow.reports_for_department(department_id, current_user)

# =====================================================
# ANALYTICS
# =====================================================

@router.get("/api/analytics/stats", response_model=StatusStats, tags=["Analytics"])
async def get_report_stats(
    current_user: User = Depends(get_admin_user),
    analytics: AnalyticsService = Depends(get_analytics),
):
    """Report counts by status (Admin only)"""
    return analytics.stats(current_user)

@router.get("/api/analytics/categories", response_model=List[CategoryStats], tags=["Analytics"])
async def get_category_stats(
    current_user: User = Depends(get_admin_user),
    analytics: AnalyticsService = Depends(get_analytics),
):
    """Report counts by category (Admin only)"""
    return analytics.reports_by_category(current_user)

# =====================================================
# NOTIFICATIONS
# =====================================================

@router.get("/api/notifications", response_model=List[Notification], tags=["Notifications"])
async def list_notifications(
    current_user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notifications),
):
    """Get notifications for current user, newest first"""
    return notifications.list_for(current_user)

@router.patch("/api/notifications/{notification_id}/read", tags=["Notifications"])
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notifications),
):
    """Mark notification as read"""
    notifications.mark_read(notification_id, current_user)
    return {"message": "Notification marked as read"}

# =====================================================
# UPLOADED MEDIA
# =====================================================

@router.get("/uploads/{file_name}", tags=["Utility"])
async def get_media(
    file_name: str,
    current_user: User = Depends(get_current_user),
    workflow: ReportWorkflow = Depends(get_workflow),
    media_store: MediaStore = Depends(get_media_store),
):
    """Serve an uploaded file to the owner of the report that references it, or to admins"""
    path = media_store.open(file_name)
    if not is_admin(current_user):
        workflow.media_owner_report(MediaStore.url_for(file_name), current_user)
    return FileResponse(path)

# =====================================================
# APPLICATION FACTORY
# =====================================================

async def civic_error_handler(request: Request, exc: CivicReportError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)

async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": jsonable_encoder(exc.errors())})

def create_app(
    storage: Optional[Storage] = None,
    dispatcher: Optional[EmailDispatcher] = None,
    media_store: Optional[MediaStore] = None,
) -> FastAPI:
    """Build the API with explicitly constructed collaborators"""
    storage = storage if storage is not None else create_storage(settings)
    dispatcher = dispatcher if dispatcher is not None else EmailDispatcher.from_settings(settings)
    if media_store is None:
        media_store = MediaStore(settings.UPLOAD_DIR, settings.MAX_UPLOAD_FILES, settings.MAX_UPLOAD_BYTES)

    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Civic issue reporting and triage API"
    )

    # CORS Middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.state.storage = storage
    application.state.media_store = media_store
    application.state.workflow = ReportWorkflow(storage, dispatcher)
    application.state.catalog = CatalogService(storage)
    application.state.notifications = NotificationService(storage)
    application.state.analytics = AnalyticsService(storage)

    application.add_exception_handler(CivicReportError, civic_error_handler)
    application.add_exception_handler(RequestValidationError, request_validation_handler)
    application.include_router(router)

    @application.on_event("startup")
    async def startup_event():
        """Initialize application on startup"""
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        seed_admin(storage, settings.ADMIN_USERNAME, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)

    return application

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)

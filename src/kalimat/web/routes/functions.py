"""Function endpoints.

Each endpoint authenticates the bearer token and then works on the
service-role store, since several of them read or write rows the caller
could not touch directly (other learners' progress, group membership).
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends

from kalimat.core.auth import AuthUser
from kalimat.core.certificates import issue_certificate
from kalimat.core.groups import join_group
from kalimat.core.notifications import send_daily_notifications
from kalimat.core.profiles import create_user_profile, log_app_error, save_admin_setting
from kalimat.core.reports import analyze_user_behavior, get_reports_data
from kalimat.db.repository import EntityClient
from kalimat.errors import KalimatError
from kalimat.web.deps import (
    get_current_user,
    get_elevated_client,
    get_user_client,
    http_error,
    require_batch_caller,
)
from kalimat.web.schemas import (
    AdminSettingRequest,
    AppErrorReport,
    IssueCertificateRequest,
    JoinGroupRequest,
    JoinGroupResponse,
    NotificationBatchResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/functions", tags=["functions"])


@router.post("/get-reports-data")
async def reports_data(
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> dict[str, Any]:
    """Stats, averages, monthly history and suggestions for the caller."""
    try:
        return get_reports_data(client, user)
    except KalimatError as e:
        raise http_error(e) from e


@router.post("/join-group", response_model=JoinGroupResponse)
async def join_group_by_code(
    request: JoinGroupRequest,
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> JoinGroupResponse:
    """Join a group by its join code."""
    try:
        group = join_group(client, user, request.join_code)
    except KalimatError as e:
        raise http_error(e) from e
    return JoinGroupResponse(success=True, group=group)


@router.post("/issue-certificate")
async def issue_course_certificate(
    request: IssueCertificateRequest,
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> dict[str, Any]:
    """Issue a certificate for a completed course."""
    try:
        return issue_certificate(client, user, request.courseId)
    except KalimatError as e:
        raise http_error(e) from e


@router.post("/create-user-profile")
async def create_profile(
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> dict[str, Any]:
    """Create the caller's profile and progress if missing."""
    try:
        return create_user_profile(client, user)
    except KalimatError as e:
        raise http_error(e) from e


@router.post("/admin-settings")
async def admin_settings(
    request: AdminSettingRequest,
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> dict[str, Any]:
    """Insert or update an application setting (admins only)."""
    try:
        row = save_admin_setting(client, user, request.key, request.value, request.description)
    except KalimatError as e:
        raise http_error(e) from e
    return {"success": True, "data": [row]}


@router.post("/log-app-error")
async def log_error(
    report: AppErrorReport,
    client: EntityClient = Depends(get_elevated_client),
) -> dict[str, Any]:
    """Store a client-side error. Open to anonymous callers."""
    try:
        return log_app_error(client, report.model_dump())
    except KalimatError as e:
        raise http_error(e) from e


@router.post("/analyze-user-behavior")
async def analyze_behavior(
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> dict[str, Any]:
    """Best review time, weak words and suggestions for the caller."""
    try:
        return analyze_user_behavior(client, user)
    except KalimatError as e:
        raise http_error(e) from e


@router.post(
    "/send-daily-notifications",
    response_model=NotificationBatchResponse,
    dependencies=[Depends(require_batch_caller)],
)
async def daily_notifications(
    client: EntityClient = Depends(get_elevated_client),
) -> NotificationBatchResponse:
    """Run the daily notification batch."""
    try:
        result = send_daily_notifications(client)
    except KalimatError as e:
        raise http_error(e) from e
    return NotificationBatchResponse(**result)

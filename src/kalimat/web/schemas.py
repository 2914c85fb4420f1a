"""Pydantic schemas for the HTTP API.

Request bodies for the function endpoints keep the field names the client
apps already send (``join_code``, ``courseId``, ...).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# =============================================================================
# HEALTH
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    store: str


# =============================================================================
# FUNCTION SCHEMAS
# =============================================================================


class JoinGroupRequest(BaseModel):
    """Request body for joining a group."""

    join_code: str | None = None


class JoinGroupResponse(BaseModel):
    """Response after joining a group."""

    success: bool = True
    group: dict[str, Any]


class IssueCertificateRequest(BaseModel):
    """Request body for issuing a certificate."""

    courseId: int | str | None = None


class AdminSettingRequest(BaseModel):
    """Request body for saving an application setting."""

    key: str | None = None
    value: Any = None
    description: str | None = None


class AppErrorReport(BaseModel):
    """Error reported by a client app."""

    error_message: str | None = None
    error_details: Any = None
    context: str | None = None
    user_email: str | None = None
    additional_data: dict[str, Any] | None = None


class NotificationBatchResponse(BaseModel):
    """Result of the daily notification job."""

    success: bool
    notificationsSent: int
    message: str


# =============================================================================
# LEARNING SCHEMAS
# =============================================================================


class ReviewRequest(BaseModel):
    """One flashcard review."""

    word_id: int
    quality: int = Field(..., ge=0, le=5)


class LearnWordRequest(BaseModel):
    """Mark a word as learned."""

    word_id: int


class QuizAnswerIn(BaseModel):
    """One answered quiz question."""

    word_id: int | None = None
    is_correct: bool
    selected: str | None = None
    srs_quality: int | None = None


class QuizFinishRequest(BaseModel):
    """Answers of a finished quiz."""

    answers: list[QuizAnswerIn]
    hearts: int = Field(default=0, ge=0)
    completion_time: int = Field(default=0, ge=0)
    quiz_type: str = "meaning"


class QuizFinishResponse(BaseModel):
    """Quiz result and progress changes."""

    session_id: int | None
    score: int
    correct: int
    total: int
    xp_earned: int
    new_total_xp: int
    new_level: int
    leveled_up: bool
    quiz_streak: int
    perfect: bool


class PurchaseRequest(BaseModel):
    """Buy a shop item."""

    item_id: str


class ShopItemResponse(BaseModel):
    """Catalog item with ownership flag."""

    id: str
    name: str
    price: int
    icon: str
    item_type: str
    rarity: str | None = None
    uses: int | None = None
    duration: str | None = None
    owned: bool = False


class ShopResponse(BaseModel):
    """Catalog plus the caller's balance."""

    items: list[ShopItemResponse]
    current_gems: int


# =============================================================================
# ENTITY SCHEMAS
# =============================================================================


class EntityQuery(BaseModel):
    """Filter request for the generic entity endpoint."""

    where: dict[str, Any] | None = None
    sort: str | None = None
    limit: int = Field(default=10000, ge=1)


class DeleteResponse(BaseModel):
    """Response for a deleted record."""

    success: bool

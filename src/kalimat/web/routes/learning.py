"""Learner endpoints: profile, reviews, quizzes, leaderboard and shop."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from kalimat.core import leaderboard, progress, shop, srs
from kalimat.core.auth import AuthUser, update_me
from kalimat.db.repository import EntityClient
from kalimat.errors import KalimatError
from kalimat.web.deps import get_current_user, get_elevated_client, get_user_client, http_error
from kalimat.web.schemas import (
    LearnWordRequest,
    PurchaseRequest,
    QuizFinishRequest,
    QuizFinishResponse,
    ReviewRequest,
    ShopItemResponse,
    ShopResponse,
)

router = APIRouter(prefix="/api", tags=["learning"])


@router.get("/me")
async def get_me(user: AuthUser = Depends(get_current_user)) -> dict[str, Any]:
    """The caller merged with their profile."""
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "preferences": user.preferences,
        "notification_settings": user.notification_settings,
    }


@router.patch("/me")
async def patch_me(
    data: dict[str, Any],
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> dict[str, Any]:
    """Update the caller's profile."""
    try:
        return update_me(client, user, data)
    except KalimatError as e:
        raise http_error(e) from e


@router.post("/learning/login")
async def login(
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> dict[str, Any]:
    """Record today's visit and return the updated progress."""
    try:
        return progress.record_login(client, user)
    except KalimatError as e:
        raise http_error(e) from e


@router.get("/learning/due")
async def due_flashcards(
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> list[dict[str, Any]]:
    """The caller's flashcards due for review, most urgent first."""
    try:
        cards = client.FlashCard.filter(client.FlashCard.owned_by(user.email))
    except KalimatError as e:
        raise http_error(e) from e
    return srs.prioritize(srs.due_cards(cards))


@router.post("/learning/review")
async def review(
    request: ReviewRequest,
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> dict[str, Any]:
    """Grade a flashcard review (0-5)."""
    try:
        return srs.review_word(client, user, request.word_id, request.quality)
    except KalimatError as e:
        raise http_error(e) from e


@router.post("/learning/learn-word")
async def learn_word(
    request: LearnWordRequest,
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> dict[str, Any]:
    """Add a word to the caller's deck."""
    try:
        return progress.learn_word(client, user, request.word_id)
    except KalimatError as e:
        raise http_error(e) from e


@router.post("/learning/quiz", response_model=QuizFinishResponse)
async def finish_quiz(
    request: QuizFinishRequest,
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> QuizFinishResponse:
    """Record a finished quiz."""
    answers = [progress.QuizAnswer(**a.model_dump()) for a in request.answers]
    try:
        outcome = progress.finish_quiz(
            client,
            user,
            answers,
            hearts=request.hearts,
            completion_time=request.completion_time,
            quiz_type=request.quiz_type,
        )
    except KalimatError as e:
        raise http_error(e) from e

    return QuizFinishResponse(
        session_id=outcome.session.get("id"),
        score=outcome.score,
        correct=outcome.correct,
        total=outcome.total,
        xp_earned=outcome.xp_earned,
        new_total_xp=outcome.new_total_xp,
        new_level=outcome.new_level,
        leveled_up=outcome.leveled_up,
        quiz_streak=outcome.quiz_streak,
        perfect=outcome.perfect,
    )


@router.get("/leaderboard")
async def get_leaderboard(
    board: str | None = Query(default=None, pattern="^(global|weekly|groups)$"),
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_elevated_client),
) -> dict[str, Any]:
    """All boards, or only the one named by ``board``."""
    try:
        boards = leaderboard.load_leaderboards(client)
    except KalimatError as e:
        raise http_error(e) from e

    result = {
        "global": [entry.to_dict() for entry in boards["global"]],
        "weekly": [entry.to_dict() for entry in boards["weekly"]],
        "groups": [
            {"group": g["group"], "members": [entry.to_dict() for entry in g["members"]]}
            for g in boards["groups"]
        ],
    }
    if board:
        return {board: result[board]}
    return result


@router.get("/shop", response_model=ShopResponse)
async def get_shop(
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> ShopResponse:
    """Catalog with ownership flags and the caller's gem balance."""
    try:
        gems = shop.get_or_create_gems(client, user)
        owned = shop.owned_item_ids(client, user)
    except KalimatError as e:
        raise http_error(e) from e

    items = [
        ShopItemResponse(
            id=item.id,
            name=item.name,
            price=item.price,
            icon=item.icon,
            item_type=item.item_type,
            rarity=item.rarity,
            uses=item.uses,
            duration=item.duration,
            owned=item.id in owned,
        )
        for item in shop.CATALOG
    ]
    return ShopResponse(items=items, current_gems=gems.get("current_gems") or 0)


@router.post("/shop/purchase")
async def purchase(
    request: PurchaseRequest,
    user: AuthUser = Depends(get_current_user),
    client: EntityClient = Depends(get_user_client),
) -> dict[str, Any]:
    """Buy a catalog item with gems."""
    try:
        return shop.purchase(client, user, request.item_id)
    except KalimatError as e:
        raise http_error(e) from e

"""Entity schemas.

Every table the application touches is declared here once: its columns and
their storage types, which timestamp columns it stamps, and how ownership is
recorded. Two ownership conventions exist in the data: progress-style tables
key the owner by ``created_by`` while the rest use ``user_email``. The schema
names the field, so callers never have to guess.

Column types:
- text, integer, real: stored as-is
- bool: stored as 0/1, decoded to bool
- json: arrays / objects stored as JSON text, decoded on read

Entities with ``exposed=False`` hold privileges or server-side state (roles,
settings, balances, memberships). Only the service layer writes them; the
generic entity API does not serve them. ``readonly`` columns are dropped from
caller-supplied data on that API.
"""

from __future__ import annotations

from dataclasses import dataclass, field

COLUMN_TYPES = ("text", "integer", "real", "bool", "json")


@dataclass(frozen=True)
class EntitySchema:
    """Declaration of one entity table."""

    name: str
    table: str
    columns: dict[str, str]
    date_column: str = "created_date"
    update_column: str = "updated_date"
    owner_field: str | None = None
    stamp_user: bool = False
    unique: tuple[str, ...] = field(default_factory=tuple)
    exposed: bool = True
    readonly: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for column, col_type in self.columns.items():
            if col_type not in COLUMN_TYPES:
                raise ValueError(f"{self.table}.{column}: unknown type '{col_type}'")

    @property
    def all_columns(self) -> dict[str, str]:
        """Columns including id and timestamp columns."""
        result = {"id": "integer"}
        result.update(self.columns)
        result.setdefault(self.date_column, "text")
        result.setdefault(self.update_column, "text")
        return result

    def json_columns(self) -> set[str]:
        return {c for c, t in self.all_columns.items() if t == "json"}

    def bool_columns(self) -> set[str]:
        return {c for c, t in self.all_columns.items() if t == "bool"}

    def caller_readonly(self) -> set[str]:
        """Columns a caller never sets: id, ownership and ``readonly``."""
        columns = {"id", *self.readonly}
        if self.owner_field:
            columns.add(self.owner_field)
        if self.stamp_user:
            columns.update(("user_id", "user_email"))
        return columns

    def owned_by(self, email: str) -> dict[str, str]:
        """Condition selecting the rows owned by ``email``.

        Raises:
            ValueError: If the entity has no owner field
        """
        if self.owner_field is None:
            raise ValueError(f"{self.name} records are not user-owned")
        return {self.owner_field: email}


def _owned(name: str, table: str, columns: dict[str, str], owner_field: str = "user_email", **kwargs) -> EntitySchema:
    """Schema for a table whose rows belong to a user."""
    cols = {"user_id": "text", "user_email": "text"}
    if owner_field != "user_email":
        cols[owner_field] = "text"
    cols.update(columns)
    return EntitySchema(
        name=name,
        table=table,
        columns=cols,
        owner_field=owner_field,
        stamp_user=True,
        **kwargs,
    )


def _shared(name: str, table: str, columns: dict[str, str], **kwargs) -> EntitySchema:
    """Schema for a table that is not stamped with the creating user."""
    return EntitySchema(name=name, table=table, columns=columns, **kwargs)


_SCHEMAS = [
    _shared(
        "User",
        "user_profiles",
        {
            "user_id": "text",
            "email": "text",
            "full_name": "text",
            "role": "text",
            "preferences": "json",
            "notification_settings": "json",
            "phone_number": "text",
            "country": "text",
        },
        owner_field="email",
        readonly=("user_id", "role"),
    ),
    _shared("UserRole", "user_roles", {"user_id": "text", "role": "text"}, exposed=False),
    _owned(
        "UserProgress",
        "user_progress",
        {
            "total_xp": "integer",
            "current_level": "integer",
            "words_learned": "integer",
            "learned_words": "json",
            "quiz_streak": "integer",
            "consecutive_login_days": "integer",
            "last_login_date": "text",
            "last_quiz_date": "text",
        },
        owner_field="created_by",
    ),
    _owned(
        "QuizSession",
        "quiz_sessions",
        {
            "score": "integer",
            "total_questions": "integer",
            "correct_answers": "integer",
            "xp_earned": "integer",
            "questions_data": "json",
            "completion_time": "integer",
            "quiz_type": "text",
        },
        owner_field="created_by",
    ),
    _shared(
        "QuranicWord",
        "quranic_words",
        {
            "word": "text",
            "meaning": "text",
            "root": "text",
            "surah_name": "text",
            "surah_number": "integer",
            "ayah_number": "integer",
            "audio_url": "text",
            "difficulty_level": "text",
        },
    ),
    _shared(
        "QuranAyah",
        "quran_ayahs",
        {
            "surah_number": "integer",
            "surah_name": "text",
            "ayah_number": "integer",
            "ayah_text": "text",
            "ayah_text_simple": "text",
        },
    ),
    _shared(
        "QuranTafsir",
        "quran_tafsirs",
        {
            "surah_number": "integer",
            "ayah_number": "integer",
            "tafsir_name": "text",
            "tafsir_text": "text",
        },
    ),
    _owned(
        "FlashCard",
        "flash_cards",
        {
            "word_id": "integer",
            "efactor": "real",
            "interval": "integer",
            "repetitions": "integer",
            "next_review": "text",
            "last_review": "text",
            "next_review_message": "text",
            "is_new": "bool",
            "last_quality": "integer",
            "total_reviews": "integer",
        },
        owner_field="created_by",
    ),
    _owned("FavoriteWord", "favorite_words", {"word_id": "integer"}, owner_field="created_by"),
    _owned("UserNote", "user_notes", {"word_id": "integer", "note": "text"}),
    _shared(
        "Group",
        "groups",
        {
            "name": "text",
            "description": "text",
            "join_code": "text",
            "created_by": "text",
            "members": "json",
            "banned_members": "json",
            "avatar_url": "text",
        },
        owner_field="created_by",
        exposed=False,
    ),
    _shared(
        "GroupChallenge",
        "group_challenges",
        {
            "group_id": "integer",
            "title": "text",
            "description": "text",
            "start_date": "text",
            "end_date": "text",
            "is_active": "bool",
        },
    ),
    _owned(
        "Notification",
        "user_notifications",
        {
            "notification_type": "text",
            "title": "text",
            "message": "text",
            "icon": "text",
            "action_url": "text",
            "is_read": "bool",
        },
    ),
    _owned(
        "UserGems",
        "user_gems",
        {"total_gems": "integer", "current_gems": "integer", "gems_spent": "integer"},
        exposed=False,
    ),
    _owned(
        "UserPurchase",
        "user_purchases",
        {
            "item_id": "text",
            "item_name": "text",
            "item_type": "text",
            "price_gems": "integer",
        },
        exposed=False,
    ),
    _shared(
        "Course",
        "courses",
        {"title": "text", "description": "text", "is_published": "bool"},
    ),
    _owned(
        "UserCourseProgress",
        "user_course_progress",
        {
            "course_id": "integer",
            "is_completed": "bool",
            "progress_percentage": "integer",
        },
    ),
    _owned(
        "Certificate",
        "certificates",
        {
            "user_name": "text",
            "course_id": "integer",
            "course_title": "text",
            "code": "text",
            "issue_date": "text",
        },
        exposed=False,
    ),
    _owned(
        "ActivityLog",
        "activity_logs",
        {"activity_type": "text", "details": "json"},
    ),
    _shared(
        "ErrorLog",
        "error_logs",
        {
            "error_message": "text",
            "error_details": "text",
            "context": "text",
            "user_email": "text",
            "timestamp": "text",
            "additional_data": "json",
        },
        owner_field="user_email",
        exposed=False,
    ),
    _shared(
        "AppSettings",
        "app_settings",
        {"key": "text", "value": "json", "description": "text"},
        date_column="updated_at",
        update_column="updated_at",
        unique=("key",),
        exposed=False,
    ),
]

ENTITIES: dict[str, EntitySchema] = {s.name: s for s in _SCHEMAS}
TABLES: dict[str, EntitySchema] = {s.table: s for s in _SCHEMAS}


def get_schema(name: str) -> EntitySchema:
    """Look up a schema by entity name or table name.

    Raises:
        KeyError: If no such entity exists
    """
    if name in ENTITIES:
        return ENTITIES[name]
    if name in TABLES:
        return TABLES[name]
    raise KeyError(name)

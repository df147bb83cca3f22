"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityType(StrEnum):
    """Logical entity kinds stored in every per-user store."""

    USER = "user"

    # Catalogue entities
    SERIES = "series"
    ANIME = "anime"
    MOVIE = "movie"
    TV_SHOW = "tv_show"
    GAME = "game"
    BOOK = "book"
    SUBSCRIPTION = "subscription"
    PURCHASE_SITE = "purchase_site"

    # Sub-entities (depend on a catalogue parent)
    TOME = "tome"
    TV_SEASON = "tv_season"
    TV_EPISODE = "tv_episode"
    PURCHASE = "purchase"

    # Ownership / cost sharing
    TOME_OWNERSHIP = "tome_ownership"
    GAME_OWNERSHIP = "game_ownership"
    BOOK_OWNERSHIP = "book_ownership"
    SUBSCRIPTION_OWNERSHIP = "subscription_ownership"
    PURCHASE_OWNERSHIP = "purchase_ownership"

    # Private per-user progress, never merged
    SERIES_PROGRESS = "series_progress"
    ANIME_PROGRESS = "anime_progress"
    MOVIE_PROGRESS = "movie_progress"
    TV_SHOW_PROGRESS = "tv_show_progress"
    BOOK_PROGRESS = "book_progress"
    GAME_PROGRESS = "game_progress"


class EntityCategory(StrEnum):
    USER = "user"
    CATALOG = "catalog"
    SUB_ENTITY = "sub_entity"
    OWNERSHIP = "ownership"
    USER_PROGRESS = "user_progress"


class MergePolicy(StrEnum):
    """Which side wins when a mergeable column differs."""

    CURRENT_USER = "current-user"
    SOURCE = "source"
    NEWEST = "newest"
    OLDEST = "oldest"

    @classmethod
    def parse(cls, value: str | MergePolicy | None) -> MergePolicy:
        """Return the policy named by ``value``; unknown or unset means ``current-user``."""

        if isinstance(value, MergePolicy):
            return value
        if value is None:
            return cls.CURRENT_USER
        try:
            return cls(_normalize_policy(value))
        except ValueError:
            return cls.CURRENT_USER

    @classmethod
    def is_known(cls, value: str) -> bool:
        return _normalize_policy(value) in {policy.value for policy in cls}


class MergeTrigger(StrEnum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    RELOCATION = "relocation"


class StoreStatus(StrEnum):
    MERGED = "merged"
    REJECTED = "rejected"
    PARTIAL = "partial"


class RejectionKind(StrEnum):
    CORRUPT = "corrupt"
    LOCKED = "locked"
    UNREADABLE = "unreadable"


class MergeIssue(StrEnum):
    """Reasons a single row or table was skipped during a merge."""

    UNRESOLVABLE = "unresolvable"
    FOREIGN_KEY_UNRESOLVED = "foreign_key_unresolved"
    CONSTRAINT_VIOLATION = "constraint_violation"
    SCHEMA_MISMATCH = "schema_mismatch"
    TABLE_ABORTED = "table_aborted"


def _normalize_policy(value: str) -> str:
    return value.strip().casefold().replace("_", "-")

"""Names shared between the search index and the metatag language."""

from __future__ import annotations


class TagCategory:
    # Every category gets its own tag count in the search document,
    # stored as tag_count_<category>.
    CATEGORIES = (
        "general",
        "species",
        "character",
        "copyright",
        "artist",
        "invalid",
        "lore",
        "meta",
    )

    # Short names used by the <short>tags order tokens.
    SHORT_NAME_MAPPING = {
        "gen": "general",
        "spec": "species",
        "char": "character",
        "copy": "copyright",
        "art": "artist",
        "inv": "invalid",
        "lor": "lore",
        "meta": "meta",
    }

    @classmethod
    def count_field(cls, category: str) -> str:
        return f"tag_count_{category}"


# Metatags that filter and sort on a count kept in a search document field
# of the same name.
COUNT_METATAGS = ("comment_count",)

# Lock types that can be searched with locked:<type>.
LOCK_TYPE_TO_INDEX_FIELD = {
    "rating": "rating_locked",
    "note": "note_locked",
    "status": "status_locked",
}

# Field name used for a lock type we don't know about. No document has
# this field, so such a search matches nothing.
MISSING_LOCK_FIELD = "missing"

# The rating searches are restricted to in safe mode.
SAFE_RATING = "s"

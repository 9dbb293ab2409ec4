"""
Purpose: Guardrails for draft input.
Content: early, predictable failures before anything reaches the store:
required fields, oversized fields, stray control characters.
"""

from __future__ import annotations

from ..errors import ValidationError
from ..models import Draft, TEXT_FIELDS

MAX_FIELD_CHARS = {
    "title": 200,
    "author": 100,
    "description": 20000,
}

FIELD_LABELS = {
    "title": "Title",
    "description": "Description",
    "author": "Author",
}


class DefaultSecurity:
    def sanitize(self, text: str) -> str:
        return (text or "").replace("\x00", "").strip()

    def validate_draft(self, draft: Draft) -> dict[str, str]:
        """
        Return the cleaned text fields of a draft or raise ValidationError.
        """
        cleaned = {name: self.sanitize(getattr(draft, name)) for name in TEXT_FIELDS}

        missing = tuple(name for name in TEXT_FIELDS if not cleaned[name])
        if missing:
            labels = ", ".join(FIELD_LABELS[n] for n in missing)
            raise ValidationError(
                f"Please fill out all fields. Missing: {labels}.", fields=missing
            )

        too_long = tuple(
            name for name in TEXT_FIELDS if len(cleaned[name]) > MAX_FIELD_CHARS[name]
        )
        if too_long:
            details = ", ".join(
                f"{FIELD_LABELS[n]} (max {MAX_FIELD_CHARS[n]} characters)"
                for n in too_long
            )
            raise ValidationError(f"Too long: {details}.", fields=too_long)

        return cleaned

"""Pydantic schemas for game forms."""
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_checkbox(value: object) -> bool:
    """Interpret an HTML checkbox value: "on" and "true" are checked."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"on", "true"}


class GameForm(BaseModel):
    """Schema for the create/edit game form."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    release_date: date | None = None
    is_featured: bool = False
    # Raw values as submitted; coerced by the association service
    genre_ids: list[str] = Field(default_factory=list)
    publisher_ids: list[str] = Field(default_factory=list)

    @field_validator("description", mode="before")
    @classmethod
    def empty_description_to_none(cls, v: str | None) -> str | None:
        """Treat a blank textarea as no description."""
        if v is None or not str(v).strip():
            return None
        return v

    @field_validator("release_date", mode="before")
    @classmethod
    def empty_date_to_none(cls, v: object) -> object:
        """A blank date input means "not provided"."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("is_featured", mode="before")
    @classmethod
    def checkbox_to_bool(cls, v: object) -> bool:
        """Convert the featured checkbox value."""
        return parse_checkbox(v)

    def release_date_or_today(self) -> date:
        """Release date, defaulting to today when the form left it blank."""
        return self.release_date or date.today()

"""Pydantic schemas for publisher forms."""
from pydantic import BaseModel, ConfigDict, Field


class PublisherForm(BaseModel):
    """Schema for the create/edit publisher form."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)

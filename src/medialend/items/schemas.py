"""Pydantic schemas for lendable items."""

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .models import ItemKind


class ItemCreate(BaseModel):
    """Schema for adding an item to the catalog.

    Kind-specific fields are required only for their own kind.
    """

    kind: ItemKind
    code: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=500)
    year: str = Field(..., min_length=1, max_length=20)
    genre: str = Field(..., min_length=1)
    room: str = Field(..., min_length=1)
    shelf: str = Field(..., min_length=1)

    # Book
    page_count: Optional[int] = Field(None, gt=0)

    # Audio
    classification: Optional[str] = Field(None, min_length=1)

    # Video
    film_minutes: Optional[int] = Field(None, gt=0)
    legal_notice: Optional[str] = Field(None, min_length=1)

    @model_validator(mode="after")
    def kind_fields_present(self):
        """Validate the fields each kind needs."""
        if self.kind == ItemKind.BOOK and self.page_count is None:
            raise ValueError("a book needs page_count")
        if self.kind == ItemKind.AUDIO and self.classification is None:
            raise ValueError("an audio item needs classification")
        if self.kind == ItemKind.VIDEO and (
            self.film_minutes is None or self.legal_notice is None
        ):
            raise ValueError("a video needs film_minutes and legal_notice")
        return self


class ItemSummary(BaseModel):
    """Summary of an item for listing."""

    code: str
    kind: ItemKind
    title: str
    author: str
    year: str
    genre: str
    location: str
    lendable: bool
    on_loan: bool
    loan_count: int
    loan_days: int
    fee: float

"""Pydantic request/response models for the AI endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.gateway.types import CategoryContentKind, ReviewTone


class ChatMessageItem(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatProductItem(BaseModel):
    """Catalog product found by the storefront for the current message."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str
    price: float = Field(ge=0)
    slug: str | None = None


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    session_id: str | None = None
    history: list[ChatMessageItem] = Field(default_factory=list)
    products: list[ChatProductItem] = Field(default_factory=list)


class ChatResponse(BaseModel):
    message: str
    products: list[ChatProductItem] | None = None


class GenerateDescriptionRequest(BaseModel):
    product_name: str = Field(min_length=1, max_length=300)
    category: str | None = None


class GenerateDescriptionResponse(BaseModel):
    description: str


class GenerateCategoryContentRequest(BaseModel):
    category_name: str = Field(min_length=1, max_length=300)
    current_description: str | None = Field(default=None, max_length=2000)
    type: CategoryContentKind = CategoryContentKind.DESCRIPTION


class CategoryContentResponse(BaseModel):
    """Either ``description`` or the three meta tags, depending on the requested type."""

    description: str | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    meta_keywords: str | None = None


class GenerateBlogRequest(BaseModel):
    topic: str = Field(min_length=1, max_length=300)
    keywords: list[str] | None = None


class BlogPostResponse(BaseModel):
    title: str
    excerpt: str
    content: str


class GenerateReviewsRequest(BaseModel):
    product_name: str = Field(min_length=1, max_length=300)
    count: int = Field(default=3, ge=1, le=20)
    min_rating: int = Field(default=3, ge=1, le=5)
    max_rating: int = Field(default=5, ge=1, le=5)
    tone: ReviewTone = ReviewTone.POSITIVE

    @model_validator(mode="after")
    def _ratings_ordered(self) -> GenerateReviewsRequest:
        if self.min_rating > self.max_rating:
            raise ValueError("min_rating must not exceed max_rating")
        return self


class ReviewItem(BaseModel):
    rating: int
    title: str
    content: str
    pros: str | None = None
    cons: str | None = None


class GenerateReviewsResponse(BaseModel):
    reviews: list[ReviewItem]


class RateLimitStatusResponse(BaseModel):
    minute_remaining: int
    day_remaining: int
    minute_reset_in_ms: int
    day_reset_in_ms: int

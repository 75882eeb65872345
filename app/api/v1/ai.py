"""AI content endpoints: storefront chat and admin content generation."""

import logging

from fastapi import APIRouter, Depends, Request

from app.core.config import settings
from app.core.dependencies import get_ai_service, get_optional_user, require_role
from app.core.rate_limit import limiter
from app.gateway.service import AiService
from app.gateway.types import CatalogProduct, ChatTurn
from app.schemas.ai import (
    BlogPostResponse,
    CategoryContentResponse,
    ChatRequest,
    ChatResponse,
    GenerateBlogRequest,
    GenerateCategoryContentRequest,
    GenerateDescriptionRequest,
    GenerateDescriptionResponse,
    GenerateReviewsRequest,
    GenerateReviewsResponse,
    RateLimitStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/chat", response_model=ChatResponse)
@limiter.limit(settings.chat_rate_limit)
async def chat(
    request: Request,
    body: ChatRequest,
    service: AiService = Depends(get_ai_service),
    user: dict | None = Depends(get_optional_user),
):
    history = [ChatTurn(role=m.role, content=m.content) for m in body.history]
    products = [CatalogProduct(name=p.name, price=p.price) for p in body.products]

    message = await service.generate_chat_response(body.message, history, products)

    logger.info(
        "Chat reply for %s (session=%s, products=%d)",
        user["sub"] if user else "anonymous",
        body.session_id or "-",
        len(products),
    )
    return ChatResponse(message=message, products=body.products or None)


@router.post(
    "/generate-description",
    response_model=GenerateDescriptionResponse,
    dependencies=[Depends(require_role("manager"))],
)
async def generate_description(
    body: GenerateDescriptionRequest,
    service: AiService = Depends(get_ai_service),
):
    description = await service.generate_product_description(body.product_name, body.category)
    return GenerateDescriptionResponse(description=description)


@router.post(
    "/generate-category-content",
    response_model=CategoryContentResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_role("manager"))],
)
async def generate_category_content(
    body: GenerateCategoryContentRequest,
    service: AiService = Depends(get_ai_service),
):
    content = await service.generate_category_content(
        body.category_name,
        current_description=body.current_description,
        kind=body.type,
    )
    return CategoryContentResponse(**content)


@router.post(
    "/generate-blog",
    response_model=BlogPostResponse,
    dependencies=[Depends(require_role("manager"))],
)
async def generate_blog(
    body: GenerateBlogRequest,
    service: AiService = Depends(get_ai_service),
):
    post = await service.generate_blog_post(body.topic, body.keywords)
    return BlogPostResponse(**post)


@router.post(
    "/generate-reviews",
    response_model=GenerateReviewsResponse,
    dependencies=[Depends(require_role("admin"))],
)
async def generate_reviews(
    body: GenerateReviewsRequest,
    service: AiService = Depends(get_ai_service),
):
    reviews = await service.generate_reviews(
        body.product_name,
        count=body.count,
        min_rating=body.min_rating,
        max_rating=body.max_rating,
        tone=body.tone,
    )
    return GenerateReviewsResponse(reviews=reviews)


@router.get(
    "/rate-limit-status",
    response_model=RateLimitStatusResponse,
    dependencies=[Depends(require_role("admin"))],
)
async def rate_limit_status(service: AiService = Depends(get_ai_service)):
    return RateLimitStatusResponse(**service.get_rate_limit_status().to_dict())

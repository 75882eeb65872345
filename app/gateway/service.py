"""AI content service: quota-guarded entry point for all generation features.

Every generation goes through generate_text():
  1. Fails fast with AiNotConfigured if the vendor has no credentials
  2. Consumes one slot of the shared quota (AiRateLimitExceeded if exhausted)
  3. Calls the vendor adapter exactly once (no retry, no quota refund)

Usage:
    service = AiService(adapter, AiRateLimiter(per_minute=30, per_day=1000))
    text = await service.generate_product_description("Корм для кошек", "Кошки")
"""

from __future__ import annotations

import logging

from app.core.metrics import AI_REQUESTS
from app.gateway.normalizer import clean_text, normalize_blog_post, normalize_reviews, normalize_seo_tags
from app.gateway.rate_limiter import AiRateLimiter
from app.gateway.types import (
    AiNotConfigured,
    AiRateLimitExceeded,
    AiUpstreamError,
    AiVendor,
    CatalogProduct,
    CategoryContentKind,
    ChatTurn,
    CompletionRequest,
    RateLimitStatus,
    ReviewTone,
)
from app.gateway.vendor_adapters import BaseVendorAdapter, get_adapter

logger = logging.getLogger(__name__)

HISTORY_CONTEXT_SIZE = 5
PRODUCTS_CONTEXT_SIZE = 5

# ---------------------------------------------------------------------------
# System prompts
# ---------------------------------------------------------------------------

PRODUCT_DESCRIPTION_SYSTEM_PROMPT = """Ты — опытный копирайтер интернет-магазина BelBird.
Пиши на русском языке. Создавай привлекательные, SEO-оптимизированные описания товаров.
Описание должно быть информативным, выделять преимущества товара и побуждать к покупке.
Длина: 150-300 слов."""

CHAT_SYSTEM_PROMPT = """Ты — AI-ассистент интернет-магазина BelBird.
Помогаешь покупателям найти товары для домашних питомцев, дома и сада.
Отвечай дружелюбно, кратко и по делу.
Если не знаешь ответа — честно скажи об этом.
Всегда старайся предложить конкретные товары из каталога."""

BLOG_SYSTEM_PROMPT = """Ты — контент-менеджер интернет-магазина BelBird.
Создаёшь полезные статьи для блога на темы ухода за питомцами, домом и садом.
Статьи должны быть SEO-оптимизированы, информативны и полезны для читателей.
Формат ответа — JSON:
{
  "title": "Заголовок статьи",
  "excerpt": "Краткое описание (1-2 предложения)",
  "content": "Полный текст статьи в формате Markdown"
}"""

CATEGORY_DESCRIPTION_SYSTEM_PROMPT = """Ты — опытный копирайтер для интернет-магазина товаров для домашних питомцев, дома и сада BelBird.
Твоя задача — создавать привлекательные и информативные описания категорий товаров.
Пиши на русском языке. Описание должно быть 2-4 предложения, без заголовков и списков."""

CATEGORY_SEO_SYSTEM_PROMPT = """Ты — SEO-специалист интернет-магазина BelBird.
Составляешь мета-теги для страниц категорий товаров на русском языке.
Отвечай строго в формате JSON без пояснений."""

_TONE_TEXT = {
    ReviewTone.POSITIVE: "в основном положительный",
    ReviewTone.MIXED: "смешанный",
    ReviewTone.CRITICAL: "критический, но конструктивный",
}

REVIEWS_SYSTEM_PROMPT_TEMPLATE = """Ты генерируешь реалистичные отзывы покупателей для товара.
Отзывы должны выглядеть естественно, как написанные реальными людьми.
Используй разговорный русский язык.
Тон отзывов: {tone}.
Формат ответа — JSON массив:
[
  {{
    "rating": 5,
    "title": "Краткий заголовок",
    "content": "Текст отзыва",
    "pros": "Достоинства",
    "cons": "Недостатки (может быть пустым)"
  }}
]"""


class AiService:
    """Quota-guarded wrapper around a single vendor adapter."""

    def __init__(
        self,
        adapter: BaseVendorAdapter | None,
        rate_limiter: AiRateLimiter,
        timeout: float = 60.0,
    ):
        """
        Args:
            adapter: Vendor adapter, or None when credentials are missing
            rate_limiter: Process-wide quota shared by all callers
            timeout: Per-call upstream timeout in seconds
        """
        self.adapter = adapter
        self.rate_limiter = rate_limiter
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return self.adapter is not None

    async def generate_text(self, prompt: str, system_prompt: str | None = None) -> str:
        if self.adapter is None:
            AI_REQUESTS.labels(outcome="not_configured").inc()
            raise AiNotConfigured("AI service not configured. Set GEMINI_API_KEY or YANDEX_API_KEY.")

        try:
            self.rate_limiter.check_and_consume()
        except AiRateLimitExceeded:
            AI_REQUESTS.labels(outcome="rate_limited").inc()
            raise

        request = CompletionRequest(user_prompt=prompt, system_prompt=system_prompt or "")
        try:
            text = await self.adapter.complete(request, timeout=self.timeout)
        except AiUpstreamError as e:
            AI_REQUESTS.labels(outcome="upstream_error").inc()
            logger.error("AI vendor %s failed (%s): %s", e.vendor.value, e.error_code or "-", e)
            raise

        AI_REQUESTS.labels(outcome="success").inc()
        return text

    async def generate_product_description(self, product_name: str, category: str | None = None) -> str:
        prompt = f'Создай описание для товара: "{product_name}"'
        if category:
            prompt += f' из категории "{category}"'
        prompt += "."

        text = await self.generate_text(prompt, PRODUCT_DESCRIPTION_SYSTEM_PROMPT)
        return clean_text(text)

    async def generate_chat_response(
        self,
        message: str,
        history: list[ChatTurn] | None = None,
        products: list[CatalogProduct] | None = None,
    ) -> str:
        prompt = build_chat_prompt(message, history, products)
        text = await self.generate_text(prompt, CHAT_SYSTEM_PROMPT)
        return clean_text(text)

    async def generate_blog_post(self, topic: str, keywords: list[str] | None = None) -> dict:
        prompt = f'Напиши статью для блога на тему: "{topic}"'
        if keywords:
            prompt += f"\nКлючевые слова для SEO: {', '.join(keywords)}"

        text = await self.generate_text(prompt, BLOG_SYSTEM_PROMPT)
        return normalize_blog_post(text, topic)

    async def generate_reviews(
        self,
        product_name: str,
        count: int = 3,
        min_rating: int = 3,
        max_rating: int = 5,
        tone: ReviewTone = ReviewTone.POSITIVE,
    ) -> list[dict]:
        system_prompt = REVIEWS_SYSTEM_PROMPT_TEMPLATE.format(tone=_TONE_TEXT[tone])
        prompt = f'Сгенерируй {count} отзывов для товара "{product_name}".\nРейтинг от {min_rating} до {max_rating}.'

        text = await self.generate_text(prompt, system_prompt)
        return normalize_reviews(text, min_rating=min_rating, max_rating=max_rating)

    async def generate_category_content(
        self,
        category_name: str,
        current_description: str | None = None,
        kind: CategoryContentKind = CategoryContentKind.DESCRIPTION,
    ) -> dict:
        """Category description or SEO meta tags, depending on ``kind``."""
        if kind == CategoryContentKind.SEO:
            prompt = (
                f'Создай SEO мета-теги для категории товаров "{category_name}" в интернет-магазине BelBird.\n'
                "Ответь строго в формате JSON:\n"
                '{"metaTitle": "до 60 символов", "metaDescription": "до 160 символов", '
                '"metaKeywords": "5-10 ключевых слов через запятую"}'
            )
            text = await self.generate_text(prompt, CATEGORY_SEO_SYSTEM_PROMPT)
            return normalize_seo_tags(text, category_name)

        prompt = f'Напиши привлекательное описание для категории товаров "{category_name}" в интернет-магазине BelBird.'
        if current_description:
            prompt += f"\nТекущее описание для улучшения: {current_description}"
        prompt += "\nОписание должно быть 2-4 предложения, информативным и мотивирующим к покупке."

        text = await self.generate_text(prompt, CATEGORY_DESCRIPTION_SYSTEM_PROMPT)
        return {"description": clean_text(text)}

    def get_rate_limit_status(self) -> RateLimitStatus:
        return self.rate_limiter.get_status()


def build_chat_prompt(
    message: str,
    history: list[ChatTurn] | None = None,
    products: list[CatalogProduct] | None = None,
) -> str:
    """Compose the chat prompt from recent history and matching catalog products."""
    prompt = message

    if history:
        history_text = "\n".join(
            f"{'Покупатель' if turn.role == 'user' else 'Ассистент'}: {turn.content}"
            for turn in history[-HISTORY_CONTEXT_SIZE:]
        )
        prompt = f"История диалога:\n{history_text}\n\nПокупатель: {message}"

    if products:
        products_text = "\n".join(f"- {p.name} ({p.price:g} ₽)" for p in products[:PRODUCTS_CONTEXT_SIZE])
        prompt += f"\n\nРелевантные товары из каталога:\n{products_text}"

    return prompt


def build_ai_service(settings) -> AiService:
    """Create the service from application settings."""
    rate_limiter = AiRateLimiter(
        per_minute=settings.ai_rate_limit_per_minute,
        per_day=settings.ai_rate_limit_per_day,
    )

    adapter: BaseVendorAdapter | None = None
    try:
        vendor = AiVendor(settings.ai_provider)
    except ValueError:
        logger.error(
            "Unknown AI_PROVIDER %r (expected one of: %s); generation endpoints will return 503",
            settings.ai_provider,
            ", ".join(v.value for v in AiVendor),
        )
        return AiService(None, rate_limiter, timeout=settings.ai_timeout_seconds)

    if vendor == AiVendor.GEMINI and settings.gemini_api_key:
        adapter = get_adapter(vendor, settings.gemini_api_key, model=settings.gemini_model)
    elif vendor == AiVendor.YANDEXGPT and settings.yandex_api_key and settings.yandex_folder_id:
        adapter = get_adapter(
            vendor,
            settings.yandex_api_key,
            model=settings.yandex_model,
            folder_id=settings.yandex_folder_id,
            use_iam=settings.yandex_use_iam,
        )
    else:
        logger.warning("AI provider %s has no credentials; generation endpoints will return 503", vendor.value)

    return AiService(adapter, rate_limiter, timeout=settings.ai_timeout_seconds)

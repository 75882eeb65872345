"""Response Normalizer: turns free-form model text into structured content.

Models are asked for JSON but often wrap it in prose or Markdown fences.
The helpers here pull out the first JSON object/array and fall back to
plain-text shapes when nothing parseable is found.
"""

from __future__ import annotations

import json
import logging
import re

logger = logging.getLogger(__name__)

# Greedy: first opening bracket to the last closing one
_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")

EXCERPT_LENGTH = 200

DEFAULT_REVIEW = {
    "rating": 5,
    "title": "Отличный товар",
    "content": "Рекомендую к покупке!",
}


def clean_text(text: str) -> str:
    """Strip whitespace and surrounding Markdown code fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```[a-zA-Z]*\s*", "", cleaned)
        cleaned = re.sub(r"\s*```$", "", cleaned)
    return cleaned.strip()


def extract_json_object(text: str) -> dict | None:
    """Return the first JSON object embedded in text, or None."""
    match = _OBJECT_PATTERN.search(text or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.debug("Model returned malformed JSON object")
        return None
    return data if isinstance(data, dict) else None


def extract_json_array(text: str) -> list | None:
    """Return the first JSON array embedded in text, or None."""
    match = _ARRAY_PATTERN.search(text or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.debug("Model returned malformed JSON array")
        return None
    return data if isinstance(data, list) else None


def normalize_blog_post(text: str, topic: str) -> dict:
    """Blog post as {title, excerpt, content}; plain text becomes the content."""
    data = extract_json_object(text)
    if data and data.get("content"):
        return {
            "title": str(data.get("title") or topic),
            "excerpt": str(data.get("excerpt") or ""),
            "content": str(data["content"]),
        }

    return {
        "title": topic,
        "excerpt": text[:EXCERPT_LENGTH],
        "content": text,
    }


def normalize_reviews(text: str, min_rating: int = 1, max_rating: int = 5) -> list[dict]:
    """Reviews as a list of dicts with rating clamped into [min_rating, max_rating]."""
    items = extract_json_array(text)
    reviews: list[dict] = []

    for item in items or []:
        if not isinstance(item, dict) or not item.get("content"):
            continue
        try:
            rating = int(item.get("rating", max_rating))
        except (TypeError, ValueError):
            rating = max_rating
        review = {
            "rating": min(max(rating, min_rating), max_rating),
            "title": str(item.get("title") or ""),
            "content": str(item["content"]),
        }
        if item.get("pros"):
            review["pros"] = str(item["pros"])
        if item.get("cons"):
            review["cons"] = str(item["cons"])
        reviews.append(review)

    if not reviews:
        logger.info("No parseable reviews in model output, using default review")
        return [{**DEFAULT_REVIEW, "rating": min(max(DEFAULT_REVIEW["rating"], min_rating), max_rating)}]
    return reviews


def normalize_seo_tags(text: str, name: str) -> dict:
    """SEO tags as {meta_title, meta_description, meta_keywords}.

    The model answers in camelCase JSON; anything missing is filled from a
    template built on ``name``.
    """
    data = extract_json_object(text) or {}
    fallback = {
        "meta_title": f"{name} | купить в BelBird",
        "meta_description": (
            f"{name} в интернет-магазине BelBird. Широкий выбор, доступные цены, быстрая доставка."
        ),
        "meta_keywords": name.lower(),
    }
    if not data:
        logger.info("No parseable SEO tags in model output, using template for %r", name)

    keywords = data.get("metaKeywords")
    if isinstance(keywords, list):
        keywords = ", ".join(str(k) for k in keywords)

    return {
        "meta_title": str(data.get("metaTitle") or fallback["meta_title"]),
        "meta_description": str(data.get("metaDescription") or fallback["meta_description"]),
        "meta_keywords": str(keywords or fallback["meta_keywords"]),
    }

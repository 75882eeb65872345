"""AI content gateway.

Generative-text access for the store, guarded by one shared quota:
  - Rate limiter (per-minute / per-day budget for the upstream key)
  - Vendor adapters (Gemini, YandexGPT wire protocols)
  - Response normalizer (JSON extraction with safe fallbacks)
  - Content service (chat, descriptions, blog posts, reviews)
"""

"""Delivery quote layer.

Prices a shipment across carriers (CDEK, Boxberry, Russian Post):
  - Carrier clients (one HTTP protocol each)
  - Concurrent fan-out with per-carrier timeout
  - Static fallback quotes for unreachable or unconfigured carriers
  - Free-shipping thresholds and deterministic ordering
"""

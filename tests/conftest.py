"""
Shared pytest fixtures.

Settings are built at import time and require GOOGLE_API_KEY, so a dummy
key is set before any app module is imported.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")

from app.core.config import settings  # noqa: E402


@pytest.fixture
def shopify_settings(monkeypatch):
    """Point the catalog exporter at a fake shop."""
    monkeypatch.setattr(settings, "shopify_shop_domain", "test-shop.myshopify.com")
    monkeypatch.setattr(settings, "shopify_access_token", "shpat_test")
    monkeypatch.setattr(settings, "shopify_api_version", "2024-10")
    monkeypatch.setattr(settings, "default_vendor", "AI Generated")
    monkeypatch.setattr(settings, "default_product_type", "General")
    return settings


@pytest.fixture
def no_shopify(monkeypatch):
    monkeypatch.setattr(settings, "shopify_shop_domain", None)
    monkeypatch.setattr(settings, "shopify_access_token", None)
    return settings

"""Tests for provider coupon normalization."""
from datetime import datetime, timedelta, timezone

import pytest
from src.parse.models import RawCoupon
from src.parse.normalizer import dedup_key, normalize

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def raw(code, discount="10%", **extra):
    data = {
        "code": code,
        "discount": discount,
        "description": f"{discount} off",
        "expiresIn": "30 days",
        "verified": True,
    }
    data.update(extra)
    return RawCoupon.model_validate(data)


def test_normalize_maps_fields():
    """Provider fields land on the cache record columns."""
    records = normalize(
        "acme.com",
        [raw("SAVE10", restrictions="New customers", confidence_score=0.8, source_url="https://x.test")],
        now=NOW,
    )

    assert len(records) == 1
    record = records[0]
    assert record.website_domain == "acme.com"
    assert record.code == "SAVE10"
    assert record.discount == "10%"
    assert record.description == "10% off"
    assert record.expires_in == "30 days"
    assert record.verified is True
    assert record.restrictions == "New customers"
    assert record.confidence_score == 0.8
    assert record.source_url == "https://x.test"
    assert record.last_seen_at == NOW


def test_normalize_uniform_expiry_window():
    """Every record of a batch expires 24 hours after now."""
    records = normalize("acme.com", [raw("A"), raw("B"), raw("C")], now=NOW, ttl_hours=24)

    assert {r.cache_expires_at for r in records} == {NOW + timedelta(hours=24)}


def test_normalize_later_duplicate_wins():
    """Two entries with the same code keep the later entry's values."""
    records = normalize(
        "acme.com",
        [raw("SAVE", discount="10%"), raw("OTHER"), raw("SAVE", discount="25%")],
        now=NOW,
    )

    assert [r.code for r in records] == ["SAVE", "OTHER"]
    assert records[0].discount == "25%"


def test_normalize_keeps_empty_code():
    """Empty codes are not rejected here and still deduplicate."""
    records = normalize("acme.com", [raw(""), raw("", discount="5%")], now=NOW)

    assert len(records) == 1
    assert records[0].code == ""
    assert records[0].discount == "5%"


def test_normalize_empty_input():
    assert normalize("acme.com", [], now=NOW) == []


def test_dedup_key():
    assert dedup_key("acme.com", "SAVE10") == "acme.com_SAVE10"

"""Raw upstream market record (any shape) -> canonical MarketRecord."""

from __future__ import annotations

import json
import math
import random
from datetime import datetime, timezone
from typing import Any

from polymovers.models.market import DEFAULT_TOKEN, MarketRecord, Token

# Identifier fields in lookup order: CLOB shape first, then Gamma shape.
ID_FIELDS = ("condition_id", "conditionId", "id", "question_id", "questionID")
END_DATE_FIELDS = ("end_date_iso", "endDateIso", "endDate", "end_date")
VOLUME_FIELDS = ("volume24hr", "volume_24hr", "volume24hrClob", "volumeNum")
LIQUIDITY_FIELDS = ("liquidity", "liquidityNum", "liquidityUSD")

DEFAULT_PRICE = 0.5
PLACEHOLDER_VOLUME_BASE = 5000.0
PLACEHOLDER_VOLUME_SPAN = 50000.0

REJECT_NOT_A_MAPPING = "not_a_mapping"
REJECT_MISSING_QUESTION = "missing_question"
REJECT_MISSING_ID = "missing_id"


def parse_float(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def _price(value: Any) -> float:
    """Token price in [0, 1]; anything else falls back to 0.5."""
    p = parse_float(value, default=DEFAULT_PRICE)
    if not 0 <= p <= 1:
        return DEFAULT_PRICE
    return p


def _bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v in ("true", "1", "yes"):
            return True
        if v in ("false", "0", "no", ""):
            return False
        return default
    if isinstance(value, (int, float)):
        return value != 0
    return default


def _as_list(value: Any) -> list[Any]:
    """List field that may arrive as a list, a JSON-encoded array or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return []
        try:
            decoded = json.loads(s)
        except (json.JSONDecodeError, TypeError):
            return [part.strip() for part in s.split(",") if part.strip()]
        if isinstance(decoded, list):
            return decoded
        return [decoded]
    return []


def _first_text(raw: dict[str, Any], fields: tuple[str, ...]) -> str:
    for field in fields:
        value = raw.get(field)
        if value is None or isinstance(value, (dict, list, bool)):
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def extract_id(raw: dict[str, Any]) -> str:
    """Stable identifier from whichever ID field is present, or '' if none."""
    return _first_text(raw, ID_FIELDS)


def extract_question(raw: dict[str, Any]) -> str:
    value = raw.get("question")
    if not isinstance(value, str):
        return ""
    return value.strip()


def rejection_reason(raw: Any) -> str | None:
    """Why a raw record cannot be normalized, or None if it can."""
    if not isinstance(raw, dict):
        return REJECT_NOT_A_MAPPING
    if not extract_question(raw):
        return REJECT_MISSING_QUESTION
    if not extract_id(raw):
        return REJECT_MISSING_ID
    return None


def parse_tags(raw_tags: Any) -> tuple[str, ...]:
    """Tags as lower-cased strings. Accepts strings, {label} and {slug} objects; drops 'all'."""
    tags = []
    for entry in _as_list(raw_tags):
        if isinstance(entry, str):
            name = entry
        elif isinstance(entry, dict):
            name = entry.get("label") or entry.get("slug") or ""
            if not isinstance(name, str):
                name = str(name)
        else:
            continue
        name = name.strip().lower()
        if name and name != "all":
            tags.append(name)
    return tuple(tags)


def _tokens_from_objects(raw_tokens: list[Any]) -> list[Token]:
    """CLOB shape: tokens=[{outcome, price, winner, token_id}]. Price-less entries are skipped."""
    tokens = []
    for entry in raw_tokens:
        if not isinstance(entry, dict) or entry.get("price") is None:
            continue
        token_id = entry.get("token_id") or entry.get("tokenId")
        tokens.append(
            Token(
                outcome=str(entry.get("outcome") or "Unknown"),
                price=_price(entry.get("price")),
                winner=_bool(entry.get("winner")),
                token_id=str(token_id) if token_id else None,
            )
        )
    return tokens


def _tokens_from_parallel_lists(raw: dict[str, Any]) -> list[Token]:
    """Gamma shape: outcomes / outcomePrices / clobTokenIds as parallel (often JSON-string) arrays."""
    names = _as_list(raw.get("outcomes"))
    prices = _as_list(raw.get("outcomePrices"))
    if not names or not prices:
        return []
    token_ids = _as_list(raw.get("clobTokenIds"))
    tokens = []
    for i, name in enumerate(names):
        price = prices[i] if i < len(prices) else None
        token_id = token_ids[i] if i < len(token_ids) else None
        tokens.append(
            Token(
                outcome=str(name) if name not in (None, "") else "Unknown",
                price=_price(price),
                token_id=str(token_id) if token_id else None,
            )
        )
    return tokens


def parse_tokens(raw: dict[str, Any]) -> tuple[Token, ...]:
    """Outcome tokens, never empty: falls back to a single Yes @ 0.5."""
    tokens = _tokens_from_objects(_as_list(raw.get("tokens")))
    if not tokens:
        tokens = _tokens_from_parallel_lists(raw)
    if not tokens:
        return (DEFAULT_TOKEN,)
    return tuple(tokens)


def parse_datetime(value: Any) -> datetime | None:
    """ISO-8601 string or epoch (seconds or ms) -> aware UTC datetime. Unparsable -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        ts = float(value)
        if ts > 1e11:  # ms epoch
            ts /= 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_end_date(raw: dict[str, Any]) -> datetime | None:
    for field in END_DATE_FIELDS:
        dt = parse_datetime(raw.get(field))
        if dt is not None:
            return dt
    return None


def _first_positive(raw: dict[str, Any], fields: tuple[str, ...]) -> float:
    for field in fields:
        value = parse_float(raw.get(field))
        if value > 0:
            return value
    return 0.0


def placeholder_volume(rng: random.Random) -> float:
    """Stand-in 24h volume for records carrying none. Only used when explicitly enabled."""
    return float(math.floor(PLACEHOLDER_VOLUME_BASE + rng.random() * PLACEHOLDER_VOLUME_SPAN))


def normalize_market(raw: Any, placeholder_rng: random.Random | None = None) -> MarketRecord | None:
    """Convert one raw record to a MarketRecord. Returns None when it lacks a question or an ID.

    Never raises for malformed sub-fields; they fall back to defaults. When placeholder_rng is
    given and the record has no real 24h volume figure, a placeholder volume is drawn from it.
    """
    if rejection_reason(raw) is not None:
        return None
    volume_24h = _first_positive(raw, VOLUME_FIELDS)
    if volume_24h == 0 and placeholder_rng is not None:
        volume_24h = placeholder_volume(placeholder_rng)
    description = raw.get("description")
    return MarketRecord(
        id=extract_id(raw),
        question=extract_question(raw),
        description=description.strip() if isinstance(description, str) else "",
        end_date=parse_end_date(raw),
        closed=_bool(raw.get("closed")),
        archived=_bool(raw.get("archived")),
        active=_bool(raw.get("active"), default=True),
        tags=parse_tags(raw.get("tags")),
        tokens=parse_tokens(raw),
        volume_24h=volume_24h,
        liquidity=_first_positive(raw, LIQUIDITY_FIELDS),
        slug=_first_text(raw, ("market_slug", "slug")) or None,
        event_title=_first_text(raw, ("eventTitle", "event_title")) or None,
    )

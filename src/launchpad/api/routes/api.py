"""JSON API endpoints for token listing, charts, quotes, and trade submission."""

from __future__ import annotations

import dataclasses
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from launchpad.engine import SettlementEngine
from launchpad.exceptions import InvalidAmount
from launchpad.models import TradeRequest

log = structlog.get_logger(__name__)

router = APIRouter()

_MAX_TRADES_LIMIT = 500


def _decimal_to_str(obj: Any) -> Any:
    """Recursively convert Decimal values (and enums) to strings for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return _decimal_to_str(dataclasses.asdict(obj))
    if isinstance(obj, dict):
        return {k: _decimal_to_str(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_str(item) for item in obj]
    return obj


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(
        content={"error": "invalid_request", "message": message}, status_code=400
    )


def _engine(request: Request) -> SettlementEngine:
    return request.app.state.engine


def _normalize_kind(raw: Any) -> Any:
    return raw.lower() if isinstance(raw, str) else raw


def _parse_decimal(raw: Any, field: str) -> Decimal | None:
    """Parse an optional JSON number or string. JSON floats go through str()."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise InvalidAmount(f"{field} must be a number, got {raw!r}")
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise InvalidAmount(f"{field} {raw!r} is not a number") from exc


async def _json_body(request: Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except Exception:
        return None
    return body if isinstance(body, dict) else None


@router.get("/tokens")
async def list_tokens(request: Request) -> JSONResponse:
    """Every listed token, newest first."""
    return JSONResponse(content=_decimal_to_str(_engine(request).list_markets()))


@router.post("/tokens")
async def create_token(request: Request) -> JSONResponse:
    """List a new token. Curve parameters default to CurveSettings."""
    body = await _json_body(request)
    if body is None:
        return _bad_request("Invalid JSON body")
    for field in ("ticker", "name"):
        if field not in body:
            return _bad_request(f"Missing required field: {field}")
    if not isinstance(body["name"], str):
        return _bad_request(f"name must be a string, got {body['name']!r}")

    total_supply = body.get("total_supply")
    if total_supply is not None and (
        isinstance(total_supply, bool) or not isinstance(total_supply, int)
    ):
        raise InvalidAmount(f"total_supply must be an integer, got {total_supply!r}")

    snapshot = _engine(request).create_token(
        ticker=body["ticker"],
        name=body["name"],
        base_price=_parse_decimal(body.get("base_price"), "base_price"),
        slope=_parse_decimal(body.get("slope"), "slope"),
        total_supply=total_supply,
        creator=str(body.get("creator", "")),
    )
    return JSONResponse(content=_decimal_to_str(snapshot), status_code=201)


@router.get("/tokens/{ticker}")
async def get_token(request: Request, ticker: str) -> JSONResponse:
    """Snapshot plus 24h stats for a token page."""
    engine = _engine(request)
    content = _decimal_to_str(engine.snapshot(ticker))
    content["stats"] = _decimal_to_str(engine.stats(ticker))
    return JSONResponse(content=content)


@router.get("/tokens/{ticker}/history")
async def get_history(request: Request, ticker: str) -> JSONResponse:
    """Chart series: current curve price plus [{t, v}] points, oldest first."""
    engine = _engine(request)
    snapshot = engine.snapshot(ticker)
    points = engine.price_history(ticker)
    return JSONResponse(
        content={
            "price": str(snapshot.current_price),
            "history": [{"t": p.timestamp, "v": str(p.value)} for p in points],
        }
    )


@router.get("/tokens/{ticker}/trades")
async def get_trades(
    request: Request,
    ticker: str,
    limit: int = Query(50, ge=1, le=_MAX_TRADES_LIMIT),
) -> JSONResponse:
    """Most recent settled trades, newest first."""
    trades = _engine(request).recent_trades(ticker, limit)
    return JSONResponse(content=_decimal_to_str(trades))


@router.get("/tokens/{ticker}/quote")
async def get_quote(request: Request, ticker: str, kind: str, amount: str) -> JSONResponse:
    """Price a prospective buy (native amount) or sell (units) without settling it."""
    engine = _engine(request)
    quote = await engine.quote(ticker, _normalize_kind(kind), _parse_decimal(amount, "amount"))
    return JSONResponse(content=_decimal_to_str(quote))


@router.post("/tokens/{ticker}/trades")
async def submit_trade(request: Request, ticker: str) -> JSONResponse:
    """Settle a trade. Body: {kind, amount, actor, min_units_out?, min_net_out?}."""
    body = await _json_body(request)
    if body is None:
        return _bad_request("Invalid JSON body")
    for field in ("kind", "amount"):
        if field not in body:
            return _bad_request(f"Missing required field: {field}")

    result = await _engine(request).submit(
        TradeRequest(
            ticker=ticker,
            kind=_normalize_kind(body["kind"]),
            amount=_parse_decimal(body["amount"], "amount"),
            actor=str(body.get("actor", "")),
            min_units_out=body.get("min_units_out"),
            min_net_out=_parse_decimal(body.get("min_net_out"), "min_net_out"),
        )
    )
    if result.graduated_now:
        log.info("token_graduated_via_api", ticker=result.snapshot.ticker)
    return JSONResponse(
        content={
            "trade": _decimal_to_str(result.trade),
            "snapshot": _decimal_to_str(result.snapshot),
            "graduated_now": result.graduated_now,
        },
        status_code=201,
    )

"""Persistence gateway for saved searches.

Every read and write is scoped by ``(id, user_id)``; there is no version
check, so concurrent writers to the same row are last-writer-wins.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any

from supabase import Client, create_client

from app.config import settings
from app.errors import AuthError, NotFoundError
from app.services import logger as log_service


def get_client() -> Client:
    return create_client(settings.supabase_url, settings.supabase_anon_key)


_client: Client | None = None


def client() -> Client:
    global _client
    if _client is None:
        _client = get_client()
    return _client


async def _execute(query: Any) -> Any:
    """Run blocking Supabase query execution in a worker thread."""
    return await asyncio.to_thread(query.execute)


def _coerce_json(value: Any, default: Any) -> Any:
    """Normalize legacy JSON-string columns into Python values."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return default
    return default if value is None else value


def _normalize_row(row: dict[str, Any]) -> dict[str, Any]:
    row = dict(row)
    row["search_data"] = _coerce_json(row.get("search_data"), {})
    if "campaign" in row:
        row["campaign"] = _coerce_json(row.get("campaign"), None)
    if "campaign_progress" in row:
        row["campaign_progress"] = _coerce_json(row.get("campaign_progress"), None)
    return row


def _table() -> Any:
    return client().table(settings.searches_table)


# --- Auth ---


async def get_user_id(access_token: str | None) -> str:
    """Resolve a Supabase access token to the owning user id."""
    if not access_token:
        raise AuthError("Missing access token")
    try:
        response = await asyncio.to_thread(client().auth.get_user, access_token)
    except Exception as exc:
        raise AuthError("Invalid or expired session") from exc
    user = getattr(response, "user", None)
    user_id = getattr(user, "id", None)
    if not user_id:
        raise AuthError("Invalid or expired session")
    return str(user_id)


# --- Searches ---


async def create_search(user_id: str, query: str, search_data: dict[str, Any]) -> dict[str, Any]:
    row = {"user_id": user_id, "query": query, "search_data": search_data}
    try:
        result = await _execute(_table().insert(row))
    except Exception as exc:
        log_service.log_db_operation("insert", settings.searches_table, "failed", error=str(exc))
        raise
    created = _normalize_row(result.data[0])
    log_service.log_db_operation(
        "insert", settings.searches_table, "success", details=f"id={created.get('id')}"
    )
    return created


async def get_search(search_id: str, user_id: str) -> dict[str, Any]:
    result = await _execute(
        _table().select("*").eq("id", str(search_id)).eq("user_id", user_id)
    )
    if not result.data:
        raise NotFoundError(f"Search {search_id} not found", details={"id": str(search_id)})
    return _normalize_row(result.data[0])


async def list_searches(user_id: str) -> list[dict[str, Any]]:
    result = await _execute(
        _table().select("*").eq("user_id", user_id).order("created_at", desc=True)
    )
    return [_normalize_row(row) for row in (result.data or [])]


async def update_search(search_id: str, user_id: str, **patch: Any) -> dict[str, Any]:
    """Apply ``patch`` (campaign, campaign_progress, search_data) to one row."""
    allowed = {"campaign", "campaign_progress", "search_data", "query"}
    unknown = set(patch) - allowed
    if unknown:
        raise ValueError(f"Unsupported search fields: {', '.join(sorted(unknown))}")
    try:
        result = await _execute(
            _table().update(patch).eq("id", str(search_id)).eq("user_id", user_id)
        )
    except Exception as exc:
        log_service.log_db_operation(
            "update", settings.searches_table, "failed", details=f"id={search_id}", error=str(exc)
        )
        raise
    if not result.data:
        raise NotFoundError(f"Search {search_id} not found", details={"id": str(search_id)})
    log_service.log_db_operation(
        "update",
        settings.searches_table,
        "success",
        details=f"id={search_id} fields={','.join(sorted(patch))}",
    )
    return _normalize_row(result.data[0])

"""
Flash Messages
================
One-shot messages carried to the next request in a cookie.

Routes queue messages on request.state; the middleware in main.py writes
them out. Each message is structured ({"text", "category", "data"}) so the
page that shows it picks the final wording:

    flash(request, "Cart updated.", "success")
    flash_notice(request, notice)   # cart auto-adjustment notice
"""

import json
import urllib.parse
from dataclasses import asdict, is_dataclass
from typing import List, Optional
from fastapi import Request, Response


FLASH_COOKIE = "_flash"
FLASH_MAX_AGE = 60


def pending_messages(request: Request) -> list:
    """Messages queued during the current request."""
    return getattr(request.state, "_flash_messages", None) or []


def _encode(messages: list) -> str:
    return urllib.parse.quote(json.dumps(messages, ensure_ascii=False, default=str))


def _decode(raw: str) -> List[dict]:
    try:
        messages = json.loads(urllib.parse.unquote(raw.strip('"')))
    except ValueError:
        return []
    return messages if isinstance(messages, list) else []


def flash(request: Request, message: str, category: str = "info", data: Optional[dict] = None):
    entry = {"text": message, "category": category}
    if data:
        entry["data"] = data
    request.state._flash_messages = pending_messages(request) + [entry]


def flash_notice(request: Request, notice):
    """Queue a cart notice (dataclass or mapping) as a success message."""
    data = asdict(notice) if is_dataclass(notice) else dict(notice)
    flash(request, str(notice), "success", data=data)


def get_flashed_messages(request: Request) -> List[dict]:
    """Messages queued by the previous request."""
    raw = request.cookies.get(FLASH_COOKIE)
    return _decode(raw) if raw else []


def set_flash_cookie(response: Response, messages: list):
    if not messages:
        clear_flash_cookie(response)
        return
    response.set_cookie(FLASH_COOKIE, _encode(messages), httponly=True, samesite="lax", max_age=FLASH_MAX_AGE)


def clear_flash_cookie(response: Response):
    response.delete_cookie(FLASH_COOKIE)

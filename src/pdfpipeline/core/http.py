"""Shared helpers for calling external JSON services over httpx."""

import base64
from typing import Any, Dict, Optional

import httpx

from .exceptions import ProviderError


def build_service_headers(token: Optional[str] = None,
                          extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = token if token.startswith("Bearer ") else f"Bearer {token}"
    if extra:
        headers.update(extra)
    return headers


def safe_parse_body(response: httpx.Response) -> Any:
    """Best-effort decode of an error body for logging."""
    try:
        return response.json()
    except ValueError:
        return response.text


def raise_for_provider(provider: str, response: httpx.Response) -> None:
    if response.is_success:
        return
    raise ProviderError(provider, response.status_code, safe_parse_body(response))


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")

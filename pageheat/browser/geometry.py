from __future__ import annotations
from typing import Any, Tuple
import asyncio
from zendriver import cdp

from ..heatmap.config import cfg

DOCUMENT_SIZE_JS = """(() => {
  const d = document.documentElement, b = document.body;
  return {
    w: Math.max(d.scrollWidth, d.offsetWidth, d.clientWidth,
                b ? b.scrollWidth : 0, b ? b.offsetWidth : 0),
    h: Math.max(d.scrollHeight, d.offsetHeight, d.clientHeight,
                b ? b.scrollHeight : 0, b ? b.offsetHeight : 0)
  };
})()"""


class DocumentSizeUnavailable(RuntimeError):
    """Raised when the full document size cannot be read from the page."""

    pass


def _unwrap_zendriver_value(possibly_wrapped: Any) -> Any:
    """Normalize zendriver responses into plain dicts or values."""
    value = possibly_wrapped
    if isinstance(value, tuple):
        value = value[0] if value else {}
    for method_name in ("to_json", "to_dict", "dict"):
        method = getattr(value, method_name, None)
        if callable(method):
            try:
                return method()
            except Exception:
                pass
    return value or {}


def _evaluated_value(resp: Any) -> Any:
    """Pull the by-value result out of a Runtime.evaluate response."""
    res = _unwrap_zendriver_value(resp)
    if isinstance(res, dict):
        inner = res.get("result", res)
        return inner.get("value") if isinstance(inner, dict) else None
    return getattr(res, "value", None)


async def evaluate(
    page, expression: str, *, timeout_seconds: float = cfg.CDP_SEND_TIMEOUT_S
) -> Any:
    """Evaluate a JS expression in the page and return its value."""
    resp = await asyncio.wait_for(
        page.send(
            cdp.runtime.evaluate(
                expression=expression,
                return_by_value=True,
                await_promise=False,
            )
        ),
        timeout=timeout_seconds,
    )
    return _evaluated_value(resp)


async def get_document_size(
    page, *, timeout_seconds: float = cfg.CDP_SEND_TIMEOUT_S
) -> Tuple[int, int]:
    """Full document (not viewport) size in CSS pixels, never negative."""
    try:
        val = await evaluate(page, DOCUMENT_SIZE_JS, timeout_seconds=timeout_seconds)
    except Exception as exc:
        raise DocumentSizeUnavailable(
            f"Document size could not be read: {exc!r}"
        ) from exc

    if not isinstance(val, dict):
        raise DocumentSizeUnavailable(f"Unexpected document size payload: {val!r}")
    try:
        width = int(float(val.get("w", 0)))
        height = int(float(val.get("h", 0)))
    except (TypeError, ValueError) as exc:
        raise DocumentSizeUnavailable(
            f"Unexpected document size payload: {val!r}"
        ) from exc
    return max(0, width), max(0, height)

# core/throttle.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from functools import wraps
from typing import Callable, Iterable, Tuple

from django.conf import settings
from django.contrib import messages
from django.core.cache import cache
from django.http import HttpRequest, HttpResponse
from django.shortcuts import redirect
from django.utils.http import url_has_allowed_host_and_scheme

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThrottleRule:
    key_prefix: str
    limit: int
    window_seconds: int

    def bucket(self, now: float) -> int:
        return int(now // max(1, self.window_seconds))

    def retry_after(self, now: float) -> int:
        window = max(1, self.window_seconds)
        return max(1, int(window - (now % window)))


def _get_client_ip(request: HttpRequest) -> str:
    """
    Best-effort client IP.

    If THROTTLE_TRUST_PROXY_HEADERS=True (prod behind your own proxy),
    we trust X-Forwarded-For / X-Real-IP. Otherwise use REMOTE_ADDR.
    """
    if getattr(settings, "THROTTLE_TRUST_PROXY_HEADERS", False):
        xff = (request.META.get("HTTP_X_FORWARDED_FOR") or "").strip()
        if xff:
            ip = xff.split(",")[0].strip()
            if ip:
                return ip

        xri = (request.META.get("HTTP_X_REAL_IP") or "").strip()
        if xri:
            return xri

    return (request.META.get("REMOTE_ADDR") or "").strip() or "ip-unknown"


def _client_fingerprint(request: HttpRequest) -> str:
    """
    Authenticated shoppers are throttled per account; anonymous traffic per ip + short UA.
    """
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return f"user:{user.pk}"
    ua = (request.META.get("HTTP_USER_AGENT") or "")[:60]
    return f"{_get_client_ip(request)}|{ua}"


def _safe_referer(request: HttpRequest) -> str | None:
    referer = (request.META.get("HTTP_REFERER") or "").strip()
    if referer and url_has_allowed_host_and_scheme(
        referer,
        allowed_hosts={request.get_host()},
        require_https=request.is_secure(),
    ):
        return referer
    return None


def throttle(rule: ThrottleRule, *, methods: Iterable[str] | None = None) -> Callable:
    """
    Cache-based fixed-window throttle for mutating endpoints
    (quick order submit, cart add).

    Browser form posts are redirected back to the referring page with a
    message; everything else gets a 429 with Retry-After.
    """
    allowed: Tuple[str, ...] = tuple(m.upper() for m in methods) if methods else ("POST", "PUT", "PATCH", "DELETE")

    def decorator(view_func: Callable) -> Callable:
        @wraps(view_func)
        def wrapped(request: HttpRequest, *args, **kwargs) -> HttpResponse:
            if request.method.upper() not in allowed:
                return view_func(request, *args, **kwargs)

            now = time.time()
            cache_key = f"throttle:{rule.key_prefix}:{rule.bucket(now)}:{_client_fingerprint(request)}"

            current = int(cache.get(cache_key, 0) or 0)
            if current >= rule.limit:
                logger.warning("throttled %s (limit=%s/%ss)", rule.key_prefix, rule.limit, rule.window_seconds)

                accept = (request.META.get("HTTP_ACCEPT") or "").lower()
                referer = _safe_referer(request)
                if "text/html" in accept and referer:
                    messages.error(request, "Too many requests. Please try again in a moment.")
                    return redirect(referer)

                resp = HttpResponse("Too many requests. Please try again shortly.", status=429)
                resp["Retry-After"] = str(rule.retry_after(now))
                return resp

            cache.set(cache_key, current + 1, timeout=rule.window_seconds + 5)
            return view_func(request, *args, **kwargs)

        return wrapped

    return decorator

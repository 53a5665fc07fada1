"""Shared HTTP helpers used by the registry client.

Encapsulates common request/timeout error handling so callers avoid
duplicating try/except blocks. Failures surface as UpstreamUnavailableError
rather than terminating the process, since a tool call must never bring the
server down.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {"User-Agent": Constants.USER_AGENT}


def _merge_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    merged = dict(_DEFAULT_HEADERS)
    if headers:
        merged.update(headers)
    return merged


def safe_get(url: str, *, context: str, **kwargs: Any) -> requests.Response:
    """Perform a GET request with consistent error handling and DEBUG traces."""
    safe_target = safe_url(url)
    headers = _merge_headers(kwargs.pop("headers", None))
    timeout = kwargs.pop("timeout", Constants.REQUEST_TIMEOUT)
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    context=context
                )
            )
        try:
            res = requests.get(url, timeout=timeout, headers=headers, **kwargs)
        except requests.Timeout as exc:
            logger.error("%s request timed out after %s seconds", context, timeout)
            raise UpstreamUnavailableError(
                f"{context} request timed out after {timeout} seconds"
            ) from exc
        except requests.RequestException as exc:  # includes ConnectionError
            logger.error("%s connection error: %s", context, exc)
            raise UpstreamUnavailableError(f"{context} connection error: {exc}") from exc
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response ok",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    outcome="success",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context
                )
            )
        return res


# Simple in-memory cache for HTTP responses
_http_cache: Dict[str, Tuple[Any, float]] = {}
_http_cache_lock = threading.Lock()


def _get_cache_key(method: str, url: str, headers: Optional[Dict[str, str]] = None) -> str:
    """Generate cache key from request parameters."""
    headers_str = str(sorted(headers.items())) if headers else ""
    return f"{method}:{url}:{headers_str}"


def _is_cache_valid(cache_entry: Tuple[Any, float]) -> bool:
    """Check if cache entry is still valid."""
    _, cached_time = cache_entry
    return time.time() - cached_time < Constants.HTTP_CACHE_TTL_SEC


def clear_http_cache() -> None:
    with _http_cache_lock:
        _http_cache.clear()


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], str]:
    """Perform GET request with timeout, retries, and caching with DEBUG traces.

    Raises:
        UpstreamUnavailableError: when every attempt failed at the transport level.
    """
    cache_key = _get_cache_key('GET', url, headers)
    safe_target = safe_url(url)

    with _http_cache_lock:
        cached = _http_cache.get(cache_key)
    if cached is not None and _is_cache_valid(cached):
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP cache hit",
                extra=extra_context(
                    event="cache_hit",
                    component="http_client",
                    action="GET",
                    target=safe_target
                )
            )
        return cached[0]

    last_exception = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        if attempt:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 1)))
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1
                        )
                    )

                response = requests.get(
                    url,
                    timeout=Constants.REQUEST_TIMEOUT,
                    headers=_merge_headers(headers),
                    **kwargs
                )
            except requests.Timeout:
                last_exception = "timeout"
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP timeout",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="timeout",
                            attempt=attempt + 1,
                            target=safe_target
                        )
                    )
                continue
            except requests.RequestException as exc:
                last_exception = str(exc)
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request exception",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="request_exception",
                            attempt=attempt + 1,
                            target=safe_target
                        )
                    )
                continue

            result = (response.status_code, dict(response.headers), response.text)
            if response.status_code >= 500:
                last_exception = f"HTTP {response.status_code}"
                continue

            with _http_cache_lock:
                _http_cache[cache_key] = (result, time.time())

            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP response ok",
                    extra=extra_context(
                        event="http_response",
                        component="http_client",
                        action="GET",
                        outcome="success",
                        status_code=response.status_code,
                        duration_ms=t.duration_ms(),
                        target=safe_target
                    )
                )
            return result

    logger.warning("GET %s failed after %s attempts: %s", safe_target, Constants.HTTP_RETRY_MAX, last_exception)
    raise UpstreamUnavailableError(
        f"Request to {safe_target} failed after {Constants.HTTP_RETRY_MAX} attempts: {last_exception}"
    )


def get_json(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], Optional[Any]]:
    """Perform GET request and parse JSON response with DEBUG traces.

    Args:
        url: Target URL
        headers: Optional request headers
        **kwargs: Additional requests.get parameters

    Returns:
        Tuple of (status_code, headers_dict, parsed_json_or_none)
    """
    status_code, response_headers, text = robust_get(url, headers=headers, **kwargs)

    if status_code == 200 and text:
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            if is_debug_enabled(logger):
                logger.debug(
                    "JSON decode error",
                    extra=extra_context(
                        event="parse",
                        component="http_client",
                        action="get_json",
                        outcome="json_decode_error",
                        status_code=status_code,
                        target=safe_url(url)
                    )
                )
            return status_code, response_headers, None
        return status_code, response_headers, parsed

    return status_code, response_headers, None


def download_file(url: str, destination: str, *, context: str, chunk_size: int = 65536) -> int:
    """Stream ``url`` into ``destination`` atomically; return the HTTP status.

    The body is written to a temporary file in the destination directory and
    renamed into place only when complete, so an interrupted download never
    leaves a truncated file behind.
    """
    os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
    res = safe_get(url, context=context, stream=True, timeout=Constants.DOWNLOAD_TIMEOUT)
    if res.status_code != 200:
        res.close()
        return res.status_code
    fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(destination) or ".", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as fh:
            for chunk in res.iter_content(chunk_size=chunk_size):
                if chunk:
                    fh.write(chunk)
        os.replace(tmp_path, destination)
    except requests.RequestException as exc:
        os.unlink(tmp_path)
        raise UpstreamUnavailableError(f"{context} download interrupted: {exc}") from exc
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    finally:
        res.close()
    return 200

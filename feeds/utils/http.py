"""HTTP helpers with bounded linear-backoff retry."""
from __future__ import annotations

import logging
import time
from typing import Any, Mapping

import requests

LOGGER = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"
DEFAULT_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "User-Agent": USER_AGENT,
}
DEFAULT_TIMEOUT = 30
DEFAULT_RETRIES = 3


def make_session(headers: Mapping[str, str] | None = None) -> requests.Session:
    """Return a session carrying the identifying headers used for every feed."""

    session = requests.Session()
    session.headers.update(DEFAULT_HEADERS)
    if headers:
        session.headers.update(headers)
    return session


def _body_snippet(response: requests.Response) -> str:
    try:
        return " ".join((response.text or "").split())[:500]
    except Exception:
        return ""


def request_json(
    session: requests.Session,
    method: str,
    url: str,
    *,
    label: str = "",
    retries: int = DEFAULT_RETRIES,
    base_delay: float = 3.0,
    timeout: float = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> Any | None:
    """Issue ``method url`` and return the decoded JSON body.

    Transport errors, non-2xx statuses and undecodable bodies are retried up to
    ``retries`` extra times, waiting ``attempt * base_delay`` seconds before
    attempt ``attempt + 1``. Returns ``None`` once every attempt has failed.
    """

    attempts = max(0, int(retries)) + 1
    for attempt in range(1, attempts + 1):
        try:
            response = session.request(method, url, timeout=timeout, **kwargs)
            if not response.ok:
                LOGGER.warning(
                    "[WARN] HTTP_STATUS label=%s status=%s body=%s",
                    label,
                    response.status_code,
                    _body_snippet(response),
                )
                raise requests.HTTPError(
                    f"HTTP {response.status_code} {response.reason or ''}".strip(),
                    response=response,
                )
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            LOGGER.warning(
                "[WARN] HTTP_FAIL label=%s attempt=%s/%s err=%s", label, attempt, attempts, exc
            )
            if attempt < attempts:
                wait = attempt * base_delay
                LOGGER.info("[INFO] HTTP_RETRY label=%s wait=%.1fs", label, wait)
                time.sleep(wait)

    LOGGER.error("[ERROR] HTTP_GIVE_UP label=%s attempts=%s", label, attempts)
    return None


__all__ = ["DEFAULT_HEADERS", "USER_AGENT", "make_session", "request_json"]

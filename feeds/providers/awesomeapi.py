"""AwesomeAPI FX quote adapter."""
from __future__ import annotations

import logging
from typing import Any, Mapping

import requests

from ..utils.http import request_json

LOGGER = logging.getLogger(__name__)

QUOTE_URL = "https://economia.awesomeapi.com.br/json/last/{pair}"


class AwesomeQuoteAdapter:
    """Single-row source: every page request returns the latest quote."""

    def __init__(
        self,
        session: requests.Session,
        *,
        pair: str = "USD-BRL",
        retries: int = 3,
        retry_base_delay: float = 2.0,
    ) -> None:
        self.session = session
        self.pair = pair
        self.retries = retries
        self.retry_base_delay = retry_base_delay

    @property
    def payload_key(self) -> str:
        return self.pair.replace("-", "")

    def fetch_page(self, start: int, end: int) -> list[dict[str, Any]] | None:
        payload = request_json(
            self.session,
            "GET",
            QUOTE_URL.format(pair=self.pair),
            label=f"awesomeapi:{self.pair}",
            retries=self.retries,
            base_delay=self.retry_base_delay,
            headers={"Accept": "application/json"},
        )
        if not isinstance(payload, Mapping):
            return None
        quote = payload.get(self.payload_key)
        if not isinstance(quote, Mapping):
            LOGGER.warning("[WARN] FX_NO_DATA pair=%s", self.pair)
            return None
        return [dict(quote)]


__all__ = ["AwesomeQuoteAdapter", "QUOTE_URL"]

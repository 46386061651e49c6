"""Investing.com equity listing adapter (GET with query parameters)."""
from __future__ import annotations

import logging
from typing import Any, Mapping

import requests

from ..utils.http import request_json

LOGGER = logging.getLogger(__name__)

LISTING_URL = "https://api.investing.com/api/financialdata/assets/equitiesByCountry/default"

FIELDS_LIST = ",".join(
    [
        "id",
        "name",
        "symbol",
        "isCFD",
        "high",
        "low",
        "last",
        "lastPairDecimal",
        "change",
        "changePercent",
        "volume",
        "time",
        "isOpen",
        "url",
        "flag",
        "countryNameTranslated",
        "exchangeId",
        "performanceDay",
        "performanceWeek",
        "performanceMonth",
        "performanceYtd",
        "performanceYear",
        "performance3Year",
        "technicalHour",
        "technicalDay",
        "technicalWeek",
        "technicalMonth",
        "avgVolume",
        "fundamentalMarketCap",
        "fundamentalRevenue",
        "fundamentalRatio",
        "fundamentalBeta",
        "pairType",
    ]
)

COUNTRY_BRAZIL = 32
COUNTRY_USA = 5


class InvestingAdapter:
    """Fetch one listing page; offsets map to ``page = start // page_size + page_base``."""

    def __init__(
        self,
        session: requests.Session,
        *,
        country_id: int,
        page_size: int,
        page_base: int = 0,
        retries: int = 3,
        retry_base_delay: float = 2.0,
    ) -> None:
        self.session = session
        self.country_id = country_id
        self.page_size = max(1, int(page_size))
        self.page_base = page_base
        self.retries = retries
        self.retry_base_delay = retry_base_delay

    def build_params(self, page: int) -> dict[str, Any]:
        return {
            "fields-list": FIELDS_LIST,
            "country-id": self.country_id,
            "filter-domain": "",
            "page": page,
            "page-size": self.page_size,
            "limit": 0,
            "include-additional-indices": "false",
            "include-major-indices": "false",
            "include-other-indices": "false",
            "include-primary-sectors": "false",
            "include-market-overview": "false",
        }

    def fetch_page(self, start: int, end: int) -> list[dict[str, Any]] | None:
        page = start // self.page_size + self.page_base
        label = f"investing:{self.country_id}:page={page}"
        payload = request_json(
            self.session,
            "GET",
            LISTING_URL,
            label=label,
            retries=self.retries,
            base_delay=self.retry_base_delay,
            params=self.build_params(page),
            headers={"Accept": "*/*"},
        )
        if not isinstance(payload, Mapping) or not isinstance(payload.get("data"), list):
            if payload is not None:
                LOGGER.warning("[WARN] INVESTING_NO_DATA label=%s", label)
            return None
        return [item for item in payload["data"] if isinstance(item, Mapping)]


__all__ = ["COUNTRY_BRAZIL", "COUNTRY_USA", "InvestingAdapter", "LISTING_URL"]

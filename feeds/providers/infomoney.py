"""InfoMoney top-movers ranking adapter."""
from __future__ import annotations

import logging
from typing import Any, Mapping

import requests

from ..utils.http import request_json

LOGGER = logging.getLogger(__name__)

RANKING_URL = "https://api.infomoney.com.br/ativos/top-alta-baixa-por-ativo/{kind}"

KIND_FII = "fii"
KIND_STOCK = "acao"


class InfoMoneyAdapter:
    def __init__(
        self,
        session: requests.Session,
        *,
        kind: str,
        page_size: int = 15,
        sector: str = "Todos",
        order_attribute: str = "Volume",
        retries: int = 3,
        retry_base_delay: float = 2.0,
    ) -> None:
        self.session = session
        self.kind = kind
        self.page_size = page_size
        self.sector = sector
        self.order_attribute = order_attribute
        self.retries = retries
        self.retry_base_delay = retry_base_delay

    @property
    def url(self) -> str:
        return RANKING_URL.format(kind=self.kind)

    def fetch_ranking_page(self, page_index: int) -> dict[str, Any] | None:
        """Return the raw ranking page (``Data``, ``TotalPages``, ``TotalCount``)."""

        label = f"infomoney:{self.kind}:page={page_index}"
        payload = request_json(
            self.session,
            "GET",
            self.url,
            label=label,
            retries=self.retries,
            base_delay=self.retry_base_delay,
            params={
                "sector": self.sector,
                "orderAtributte": self.order_attribute,
                "pageIndex": page_index,
                "pageSize": self.page_size,
                "search": "",
            },
        )
        if not isinstance(payload, Mapping):
            return None
        return dict(payload)


__all__ = ["InfoMoneyAdapter", "KIND_FII", "KIND_STOCK", "RANKING_URL"]

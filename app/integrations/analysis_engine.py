# app/integrations/analysis_engine.py

import logging
from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation
from typing import Protocol

import requests
from fastapi.concurrency import run_in_threadpool

from app.core.config import ANALYSIS_API_URL, ANALYSIS_TIMEOUT_SECONDS
from app.core.exceptions import IntegrationUnavailable
from app.models.billing.quote_models import Quote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarginAnalysis:
    profit: Decimal
    margin: Decimal
    opex: Decimal
    capex: Decimal
    monthly_commission: Decimal
    agent_spiff: Decimal

    def as_dict(self) -> dict:
        return asdict(self)


class AnalysisEngine(Protocol):
    async def by_quote(self, quote: Quote) -> MarginAnalysis:
        ...


class HttpAnalysisEngine:
    def __init__(self, base_url: str = ANALYSIS_API_URL, timeout: float = ANALYSIS_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, quote_id: int) -> requests.Response:
        return requests.get(f"{self.base_url}/quotes/{quote_id}/analysis", timeout=self.timeout)

    async def by_quote(self, quote: Quote) -> MarginAnalysis:
        if not self.base_url:
            raise IntegrationUnavailable("analysis engine not configured")

        try:
            resp = await run_in_threadpool(self._get, quote.id)
        except requests.RequestException as e:
            logger.info("Analysis request failed", extra={"quote_id": quote.id, "error": str(e)})
            raise IntegrationUnavailable(str(e)) from e

        if resp.status_code != 200:
            raise IntegrationUnavailable(f"analysis API returned {resp.status_code}")

        try:
            body = resp.json()
            return MarginAnalysis(
                profit=Decimal(str(body["profit"])),
                margin=Decimal(str(body["margin"])),
                opex=Decimal(str(body["opex"])),
                capex=Decimal(str(body["capex"])),
                monthly_commission=Decimal(str(body["monthlyCommission"])),
                agent_spiff=Decimal(str(body["agentSpiff"])),
            )
        except (ValueError, KeyError, TypeError, InvalidOperation) as e:
            raise IntegrationUnavailable(f"malformed analysis response: {e}") from e


def get_analysis_engine() -> AnalysisEngine:
    return HttpAnalysisEngine()

"""One-shot forecast fetch for the dashboard."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from usage_dashboard.gateway import GatewayError, RequestGateway
from usage_dashboard.models import Prediction, parse_predictions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PredictionState:
    predictions: tuple[Prediction, ...] = ()
    loading: bool = True
    error: str | None = None


class PredictionFetcher:
    """Loads predictions once per owning view. No retry, no refresh."""

    def __init__(self, gateway: RequestGateway) -> None:
        self.gateway = gateway
        self._state = PredictionState()
        self._started = False

    @property
    def state(self) -> PredictionState:
        return self._state

    async def load(self) -> PredictionState:
        if self._started:
            return self._state
        self._started = True

        try:
            payload = await self.gateway.get_predictions()
        except GatewayError as exc:
            logger.warning("Error fetching predictions: %s", exc)
            self._state = PredictionState(loading=False, error=exc.message or "Unknown error")
            return self._state

        self._state = PredictionState(predictions=tuple(parse_predictions(payload)), loading=False)
        return self._state

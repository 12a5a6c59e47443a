"""Travel cost estimator — one distance-matrix call per candidate, all origins at once."""

import logging
from collections.abc import Sequence

from meetpoint.config import settings
from meetpoint.exceptions import ProviderError
from meetpoint.services.google_maps_client import MapsProvider
from meetpoint.services.recommendation.fanout import DeadlineExceeded, gather_bounded
from meetpoint.services.recommendation.types import CandidatePlace, Participant, TravelCost

logger = logging.getLogger(__name__)


class TravelCostEstimator:
    """Builds per-participant travel costs; drops any candidate someone cannot reach."""

    def __init__(self, provider: MapsProvider, mode: str = "driving", concurrency: int | None = None):
        self.provider = provider
        self.mode = mode
        self.concurrency = concurrency or settings.provider_concurrency

    async def estimate(
        self,
        candidates: Sequence[CandidatePlace],
        origins: Sequence[Participant],
        deadline: float | None = None,
    ) -> dict[str, list[TravelCost]]:
        """
        Map place_id -> one TravelCost per origin (in origin order).

        A candidate appears only if every origin produced a successful cell.
        Raises ProviderError only when every candidate's matrix call failed.
        """
        if not candidates or not origins:
            return {}

        calls = [
            (lambda c=cand: self._estimate_candidate(c, origins))
            for cand in candidates
        ]
        results = await gather_bounded(calls, concurrency=self.concurrency, deadline=deadline)

        costed: dict[str, list[TravelCost]] = {}
        provider_failures = 0
        for cand, result in zip(candidates, results):
            if isinstance(result, DeadlineExceeded):
                logger.debug(f"Travel costs for {cand.place_id} not ready by deadline, dropped")
                continue
            if isinstance(result, ProviderError):
                provider_failures += 1
                logger.warning(f"Distance matrix failed for {cand.place_id}: {result.message}")
                continue
            if isinstance(result, Exception):
                provider_failures += 1
                logger.error(f"Travel cost estimation error for {cand.place_id}: {result}")
                continue
            if result is None:
                continue
            costed[cand.place_id] = result

        if provider_failures == len(candidates):
            raise ProviderError(f"Distance matrix failed for all {len(candidates)} candidates")

        logger.info(f"Travel costs: {len(costed)}/{len(candidates)} candidates reachable by all origins")
        return costed

    async def _estimate_candidate(
        self, candidate: CandidatePlace, origins: Sequence[Participant]
    ) -> list[TravelCost] | None:
        matrix = await self.provider.distance_matrix(
            [p.location for p in origins],
            [candidate.location],
            mode=self.mode,
        )

        costs: list[TravelCost] = []
        for idx, participant in enumerate(origins):
            row = matrix[idx] if idx < len(matrix) else []
            cell = row[0] if row else None
            if cell is None:
                logger.debug(f"{participant.name} cannot reach {candidate.place_id}, dropping candidate")
                return None
            costs.append(TravelCost(
                participant_name=participant.name,
                place_id=candidate.place_id,
                distance_meters=cell.distance_meters,
                duration_seconds=cell.duration_seconds,
            ))
        return costs

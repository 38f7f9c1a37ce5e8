"""
Provider Scorer
===============

Weighted multi-factor score of a candidate provider for one ticket.

Factors:
- skill match against the category's weighted requirement table
- availability (remaining share of daily capacity)
- proximity (linear falloff to zero at the horizon)
- performance (completed within SLA over a trailing window)
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List

from storedesk.core import RepositoryException
from storedesk.routing.application.interfaces import ITicketHistoryRepository
from storedesk.routing.domain import (
    PERFORMANCE_WINDOW_DAYS,
    ProviderScore,
    ScoreBreakdown,
    ScoredProvider,
    ScoringWeights,
    TicketContext,
)
from storedesk.routing.domain.scoring import (
    NEUTRAL_PERFORMANCE,
    availability_score,
    explain,
    performance_score,
    proximity_score,
    skill_match_score,
    weighted_total,
)
from storedesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProviderScorer:
    """Scores candidates; reads completion history, writes nothing."""

    def __init__(
        self,
        history_repository: ITicketHistoryRepository,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._history = history_repository
        self._clock = clock

    async def score(self, candidate: ScoredProvider, context: TicketContext) -> ProviderScore:
        """
        Score one candidate for a ticket.

        Args:
            candidate: Provider with its distance from the store
            context: Category, subcategory and priority of the ticket

        Returns:
            ProviderScore with total in [0, 1], breakdown and explanation
        """
        provider = candidate.provider
        weights = ScoringWeights.for_priority(context.priority)

        skill = skill_match_score(provider.skills or [], context.category, context.subcategory)
        availability = availability_score(provider.current_load, provider.capacity_per_day)
        proximity = proximity_score(candidate.distance_km)
        performance = await self._performance(provider.id)

        total = weighted_total(weights, skill, availability, proximity, performance)

        return ProviderScore(
            provider_id=provider.id,
            total_score=total,
            breakdown=ScoreBreakdown(
                skill_match=skill,
                availability=availability,
                proximity=proximity,
                performance=performance,
            ),
            weights=weights,
            explanation=explain(
                provider.company_name,
                total,
                weights,
                skill,
                availability,
                proximity,
                performance,
                distance_km=candidate.distance_km,
            ),
        )

    async def rank(self, candidates: List[ScoredProvider], context: TicketContext) -> List[ProviderScore]:
        """
        Score all candidates, best first.

        Equal totals keep the incoming candidate order.
        """
        scored = [await self.score(candidate, context) for candidate in candidates]
        order = sorted(range(len(scored)), key=lambda i: (-scored[i].total_score, i))
        return [scored[i] for i in order]

    async def _performance(self, provider_id: str) -> float:
        since = self._clock() - timedelta(days=PERFORMANCE_WINDOW_DAYS)
        try:
            completed, within_sla = await self._history.completion_stats(provider_id, since)
        except RepositoryException as e:
            logger.warning(
                "Performance history unavailable, using neutral score",
                extra={"provider_id": provider_id, "error": e.message}
            )
            return NEUTRAL_PERFORMANCE
        return performance_score(completed, within_sla)


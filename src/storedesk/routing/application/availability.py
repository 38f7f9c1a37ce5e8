"""
Availability Finder
===================

Finds approved providers that can take a ticket right now, with their
distance from the store and an availability score.
"""

from typing import Iterable, List

from storedesk.config import ProviderStatus
from storedesk.core import InvalidLocation
from storedesk.routing.application.interfaces import IProviderRepository
from storedesk.routing.domain import (
    AVAILABILITY_TIE_BAND,
    UNKNOWN_DISTANCE_KM,
    Coordinates,
    ScoredProvider,
    ServiceProvider,
    distance,
    skills_match,
)
from storedesk.routing.domain.scoring import availability_score
from storedesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Absorbs float noise when comparing availability against the tie band.
_BAND_EPSILON = 1e-9


def order_candidates(candidates: List[ScoredProvider]) -> List[ScoredProvider]:
    """
    Order by availability, using distance only within a tie band.

    Candidates are grouped greedily from the most available down: each band
    holds the leader and everyone within AVAILABILITY_TIE_BAND of it. Bands
    keep availability order between them; inside a band the nearest provider
    comes first.
    """
    by_availability = sorted(
        candidates,
        key=lambda c: (-c.availability_score, c.distance_km, c.provider.id),
    )

    ordered: List[ScoredProvider] = []
    index = 0
    while index < len(by_availability):
        leader = by_availability[index].availability_score
        band_end = index
        while (
            band_end < len(by_availability)
            and leader - by_availability[band_end].availability_score <= AVAILABILITY_TIE_BAND + _BAND_EPSILON
        ):
            band_end += 1
        band = by_availability[index:band_end]
        band.sort(key=lambda c: (c.distance_km, -c.availability_score, c.provider.id))
        ordered.extend(band)
        index = band_end

    return ordered


class AvailabilityFinder:
    """
    Candidate search over the provider pool.

    Read-only. Any failure past location validation degrades to an empty
    result, which callers treat the same as "no route found".
    """

    def __init__(self, provider_repository: IProviderRepository):
        self._providers = provider_repository

    async def find_available(
        self,
        required_skills: Iterable[str],
        store_location: Coordinates,
    ) -> List[ScoredProvider]:
        """
        Find providers able to take a ticket at the given store.

        Args:
            required_skills: Skill names; empty means any skill qualifies
            store_location: Store coordinates

        Returns:
            Candidates ordered by availability then distance

        Raises:
            InvalidLocation: If the store coordinates are not finite numbers
        """
        if store_location is None or not store_location.is_valid:
            raise InvalidLocation(
                getattr(store_location, "latitude", None),
                getattr(store_location, "longitude", None),
            )

        skills = [s for s in required_skills if s and s.strip()]

        try:
            pool = await self._providers.find_approved_with_capacity()
            candidates = [
                self._score(provider, store_location)
                for provider in pool
                if self._is_eligible(provider) and self._has_required_skill(provider, skills)
            ]
            candidates = [c for c in candidates if c.availability_score > 0]
            ordered = order_candidates(candidates)
        except Exception as e:
            logger.error(
                "Availability search failed",
                extra={"error": str(e), "required_skills": skills},
                exc_info=True
            )
            return []

        logger.info(
            "Available providers found",
            extra={
                "required_skills": skills,
                "pool_size": len(pool),
                "candidates": len(ordered),
            }
        )
        return ordered

    @staticmethod
    def _is_eligible(provider: ServiceProvider) -> bool:
        return (
            provider.status == ProviderStatus.APPROVED
            and provider.is_active
            and provider.has_capacity
        )

    @staticmethod
    def _has_required_skill(provider: ServiceProvider, required_skills: List[str]) -> bool:
        if not required_skills:
            return True
        return any(
            skills_match(required, offered)
            for required in required_skills
            for offered in provider.skills or []
        )

    @staticmethod
    def _score(provider: ServiceProvider, store_location: Coordinates) -> ScoredProvider:
        coordinates = provider.coordinates
        if coordinates is None:
            distance_km = UNKNOWN_DISTANCE_KM
        else:
            distance_km = distance(
                store_location.latitude,
                store_location.longitude,
                coordinates.latitude,
                coordinates.longitude,
            )
        return ScoredProvider(
            provider=provider,
            distance_km=distance_km,
            availability_score=max(0.0, availability_score(provider.current_load, provider.capacity_per_day)),
        )

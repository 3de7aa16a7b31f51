"""
Ranking, deduplication and statistics for match results.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .matching import MatchResult, MatchType


@dataclass
class MatchStatistics:
    """Counts of results per match type over a ranked set."""
    counts: Dict[str, int] = field(default_factory=dict)
    total: int = 0
    average_score: float = 0.0

    @classmethod
    def from_results(cls, results: List[MatchResult]) -> 'MatchStatistics':
        counts = {match_type.value: 0 for match_type in MatchType}
        for result in results:
            counts[result.match_type.value] += 1

        total = len(results)
        average = (
            round(sum(r.compatibility_score for r in results) / total, 2)
            if total else 0.0
        )
        return cls(counts=counts, total=total, average_score=average)

    def as_dict(self) -> dict:
        data = dict(self.counts)
        data['total'] = self.total
        data['average_score'] = self.average_score
        return data


@dataclass
class RankedResults:
    ranked: List[MatchResult]
    stats: MatchStatistics


class ResultRanker:
    """
    Orders match results best first.

    Ordering: match type priority, compatibility score, the strategy's own
    order, earlier departure, more available seats, then ride id.
    """

    @staticmethod
    def sort_key(result: MatchResult):
        candidate = result.candidate
        return (
            -result.priority,
            -result.compatibility_score,
            result.strategy_rank,
            candidate.departs_at,
            -candidate.available_seats,
            _id_key(candidate.id),
        )

    def deduplicate(self, results: Iterable[MatchResult]) -> List[MatchResult]:
        """Keep only the best-ranked occurrence of each ride."""
        best: Dict[object, MatchResult] = {}
        for result in results:
            current = best.get(result.ride_id)
            if current is None or self.sort_key(result) < self.sort_key(current):
                best[result.ride_id] = result
        return list(best.values())

    def rank(self, results: Iterable[MatchResult], max_results: int) -> RankedResults:
        """
        Deduplicate, sort and truncate results.

        Truncation happens after sorting so that a strong match found late
        in the scan is never dropped in favour of a weaker one.
        """
        ordered = sorted(self.deduplicate(results), key=self.sort_key)
        ranked = ordered[:max(max_results, 0)]
        return RankedResults(ranked=ranked, stats=MatchStatistics.from_results(ranked))


def _id_key(ride_id):
    if isinstance(ride_id, int):
        return (0, ride_id, '')
    return (1, 0, str(ride_id))

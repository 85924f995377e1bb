"""Agent identity and reputation scoring.

Trust is a weighted composite of task completion, rating average, on-chain
identity registration and dispute history. Task history is served from the
agent's recent ratings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from config import ServiceConfig
from freshness import blended_confidence
from scoring import ScoreFactor, composite_score
from synth import Stream, capped
from util import parse_iso, round_half_up, to_iso_millis

NULL_ADDRESS = "0x" + "0" * 40


@dataclass(frozen=True)
class TaskRating:
    task_id: str
    rating: float
    created_at: str
    reward: str = "0"


@dataclass(frozen=True)
class AgentStats:
    """Task statistics for an agent address.

    Attributes:
        registered: Whether the agent holds an on-chain identity
        completed_tasks: Tasks completed
        rated_tasks: Completed tasks that received a rating (<= completed_tasks)
        total_stars: Sum of ratings
        average_rating: Mean rating on a 0-100 scale
        total_earnings: Earnings as a decimal string
        skills: Declared skills
        recent_ratings: Most recent ratings, oldest first
    """

    registered: bool
    completed_tasks: int
    rated_tasks: int
    total_stars: float
    average_rating: float
    total_earnings: str
    skills: tuple[str, ...] = ()
    recent_ratings: tuple[TaskRating, ...] = ()


class ReputationScoring:
    """Trust scores, components and history for agents."""

    def __init__(self, config: ServiceConfig):
        self.config = config

    def synthesize(self, address: str) -> AgentStats:
        """Generate stats for an address; rating dates are chronological."""
        stream = Stream.for_key("agent", address.lower())
        s = self.config.setting

        completed = stream.count("completed_tasks", s("max_completed_tasks", 200))
        rated = int(capped(int(completed * stream.draw("rated_share")), completed))
        average = stream.uniform("average_rating", 0, 100, 2) if rated else 0.0

        start, end = (parse_iso(v) for v in self.config.pool("activity_window"))
        ratings = []
        cursor = start
        for i in range(min(rated, s("max_recent_ratings", 10))):
            cursor = stream.instant(f"rating_at:{i}", cursor, end)
            ratings.append(TaskRating(
                task_id=f"task-{stream.hex(f'task:{i}', 12)}",
                rating=float(stream.integer(f"rating:{i}", 0, 100)),
                created_at=to_iso_millis(cursor),
                reward=f"{stream.uniform(f'reward:{i}', 0, 500):.2f}",
            ))

        skills = stream.distinct("skills", self.config.pool("skills"), stream.integer("skill_count", 1, 3))
        return AgentStats(
            registered=stream.draw("registered") < s("registration_rate", 0.7),
            completed_tasks=completed,
            rated_tasks=rated,
            total_stars=round_half_up(average * rated, 2),
            average_rating=average,
            total_earnings=f"{stream.uniform('earnings', 0, 50_000):.2f}" if completed else "0",
            skills=tuple(skills),
            recent_ratings=tuple(ratings),
        )

    def trust_components(self, stats: AgentStats) -> list[dict[str, Any]]:
        w = self.config.weight
        return [
            {
                "component": "completion_rate",
                "score": 100 if stats.completed_tasks > 0 else 0,
                "weight": w("completion_rate"),
                "dataPoints": stats.completed_tasks,
                "evidenceUrls": [],
            },
            {
                "component": "rating_average",
                "score": stats.average_rating,
                "weight": w("rating_average"),
                "dataPoints": stats.rated_tasks,
                "evidenceUrls": [],
            },
            {
                "component": "onchain_identity",
                "score": 100 if stats.registered else 0,
                "weight": w("onchain_identity"),
                "dataPoints": 1 if stats.registered else 0,
                "evidenceUrls": [],
            },
            # No dispute records exist yet, so history counts as clean
            {
                "component": "dispute_history",
                "score": 100,
                "weight": w("dispute_history"),
                "dataPoints": 0,
                "evidenceUrls": [],
            },
        ]

    def trust_score(self, stats: AgentStats) -> float:
        factors = [
            ScoreFactor(c["component"], c["score"], c["weight"])
            for c in self.trust_components(stats)
        ]
        return composite_score(factors)

    def confidence(self, stats: AgentStats) -> float:
        if stats.completed_tasks == 0:
            return 0.0
        return blended_confidence(
            stats.completed_tasks,
            self.config.setting("confidence_reference_tasks", 100),
            stats.rated_tasks / stats.completed_tasks,
        )

    def completion_rate(self, stats: AgentStats) -> float:
        return 1.0 if stats.completed_tasks > 0 else 0.0

    def dispute_rate(self, stats: AgentStats) -> float:
        return 0.0

    def identity_state(self, stats: AgentStats) -> str:
        return "registered" if stats.registered else "unregistered"

    def history(self, stats: AgentStats, limit: int = 20, offset: int = 0) -> tuple[list[dict[str, Any]], int]:
        """Page through the agent's rated tasks.

        Returns:
            (entries, total) where total counts all entries before paging
        """
        entries = [
            {
                "taskId": r.task_id,
                "role": "worker",
                "status": "completed",
                "reward": r.reward,
                "rating": r.rating,
                "counterparty": NULL_ADDRESS,
                "completedAt": r.created_at,
                "evidenceUrls": [],
            }
            for r in stats.recent_ratings
        ]
        return entries[offset:offset + limit], len(entries)

"""
Per-request quality tracking for generated lesson sections
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from linguaspark.core.logging import metrics_logger
from linguaspark.core.sections.policy import GenerationStrategy, SectionResult

STRATEGY_SCORES = {
    GenerationStrategy.FULL: 100,
    GenerationStrategy.REPAIR: 80,
    GenerationStrategy.FALLBACK: 40,
}


@dataclass
class SectionQuality:
    section: str
    score: int
    strategy: str
    attempts: int
    duration_ms: int
    issue_count: int
    tokens_used: int
    error_id: Optional[str] = None


class QualityMetricsTracker:
    """Collects one record per section; created fresh for each lesson."""

    def __init__(self):
        self.sections: List[SectionQuality] = []

    def record(self, result: SectionResult, duration_seconds: float) -> SectionQuality:
        quality = SectionQuality(
            section=result.section_name,
            score=STRATEGY_SCORES[result.generation_strategy],
            strategy=result.generation_strategy.value,
            attempts=result.attempts,
            duration_ms=int(duration_seconds * 1000),
            issue_count=len(result.issues),
            tokens_used=result.tokens_used,
            error_id=result.error_id,
        )
        self.sections.append(quality)
        metrics_logger.log_section_result(
            result.section_name,
            quality.strategy,
            duration_seconds,
            result.attempts,
            result.tokens_used,
        )
        return quality

    @property
    def fallback_count(self) -> int:
        return sum(1 for s in self.sections if s.strategy == GenerationStrategy.FALLBACK.value)

    @property
    def regeneration_count(self) -> int:
        return sum(max(0, s.attempts - 1) for s in self.sections)

    def report(self) -> Dict[str, Any]:
        overall = round(sum(s.score for s in self.sections) / len(self.sections)) if self.sections else 0
        return {
            "overall_score": overall,
            "total_tokens": sum(s.tokens_used for s in self.sections),
            "regeneration_count": self.regeneration_count,
            "fallback_count": self.fallback_count,
            "sections": [asdict(s) for s in self.sections],
        }

"""
Generate, validate, retry, fall back: the single policy every section runs under
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

import structlog

from linguaspark.core.error_classifier import error_classifier
from linguaspark.core.exceptions import AIProviderError

logger = structlog.get_logger(__name__)


class GenerationStrategy(str, Enum):
    FULL = "full"
    REPAIR = "repair"
    FALLBACK = "fallback"


@dataclass
class ValidationResult:
    valid: bool
    issues: List[str] = field(default_factory=list)

    @property
    def score(self) -> int:
        return 100 if self.valid else max(0, 100 - 20 * len(self.issues))


@dataclass
class SectionResult:
    section_name: str
    content: Any
    tokens_used: int = 0
    generation_strategy: GenerationStrategy = GenerationStrategy.FULL
    attempts: int = 1
    issues: List[str] = field(default_factory=list)
    error_id: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.generation_strategy == GenerationStrategy.FALLBACK


async def run_section_policy(
    name: str,
    attempt: Callable[[int], Awaitable[Any]],
    validate: Callable[[Any], ValidationResult],
    fallback: Callable[[], Any],
    max_attempts: int = 2
) -> SectionResult:
    """
    Run `attempt(n)` up to max_attempts times until `validate` accepts the output.

    Attempt 1 validating gives `full`, a later one gives `repair`; otherwise the
    fallback content is returned. Provider errors are classified and count as a
    failed attempt, as does output that cannot be parsed.
    """
    issues: List[str] = []
    error_id: Optional[str] = None

    for number in range(1, max_attempts + 1):
        try:
            content = await attempt(number)
        except AIProviderError as e:
            classified = error_classifier.classify_error(e, {"section": name, "attempt": number})
            error_id = classified.error_id
            issues.append(f"attempt {number}: {classified.type.value}: {e.message}")
            logger.warning("Section attempt failed", section=name, attempt=number,
                           error_type=classified.type.value, error_id=error_id)
            continue
        except (ValueError, KeyError, TypeError) as e:
            issues.append(f"attempt {number}: malformed output: {e}")
            logger.warning("Section output could not be parsed", section=name, attempt=number, error=str(e))
            continue

        validation = validate(content)
        if validation.valid:
            strategy = GenerationStrategy.FULL if number == 1 else GenerationStrategy.REPAIR
            return SectionResult(
                section_name=name,
                content=content,
                generation_strategy=strategy,
                attempts=number,
                issues=issues,
                error_id=error_id,
            )

        issues.extend(f"attempt {number}: {issue}" for issue in validation.issues)
        logger.info("Section output failed validation", section=name, attempt=number,
                    issues=validation.issues)

    return SectionResult(
        section_name=name,
        content=fallback(),
        generation_strategy=GenerationStrategy.FALLBACK,
        attempts=max_attempts,
        issues=issues,
        error_id=error_id,
    )

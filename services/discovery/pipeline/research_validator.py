"""Quality gate for a discovery call's parsed candidates."""
import logging
from collections import Counter
from dataclasses import dataclass, field

from services.discovery.pipeline.candidates import CandidatePlace
from services.discovery.pipeline.categories import resolve_category
from services.discovery.pipeline.slugs import slugify

logger = logging.getLogger(__name__)

OVER_CONFIDENCE_THRESHOLD = 85
OVER_CONFIDENCE_RATIO = 0.80
LOW_CONFIDENCE_THRESHOLD = 40
LOW_CONFIDENCE_RATIO = 0.50
CATEGORY_CONCENTRATION_RATIO = 0.90
MIN_CONCENTRATION_SAMPLE = 5


@dataclass
class ValidationResult:
    warnings: list[str] = field(default_factory=list)

    def add_warning(self, msg: str):
        self.warnings.append(msg)


def validate_candidates(
    candidates: list[CandidatePlace],
    requested_categories: list[str] | None = None,
) -> ValidationResult:
    """
    Flag suspicious discovery output for the reviewer. Never drops candidates;
    everything still lands in the queue as pending.
    """
    result = ValidationResult()
    if not candidates:
        result.add_warning("Discovery returned 0 candidates")
        return result

    total = len(candidates)

    high_conf = [c for c in candidates if c.confidence > OVER_CONFIDENCE_THRESHOLD]
    if total > 1 and len(high_conf) / total > OVER_CONFIDENCE_RATIO:
        result.add_warning(
            f"Over-confidence: {len(high_conf)}/{total} candidates above {OVER_CONFIDENCE_THRESHOLD}")

    low_conf = [c for c in candidates if c.confidence < LOW_CONFIDENCE_THRESHOLD]
    if len(low_conf) / total > LOW_CONFIDENCE_RATIO:
        result.add_warning(
            f"Low confidence: {len(low_conf)}/{total} candidates below {LOW_CONFIDENCE_THRESHOLD}")

    slug_counts = Counter(slugify(c.name) for c in candidates)
    dupes = sorted(s for s, n in slug_counts.items() if n > 1)
    if dupes:
        result.add_warning(f"Duplicate names in response: {', '.join(dupes)}")

    resolved = Counter(resolve_category(c.category) for c in candidates)
    if requested_categories:
        wanted = {resolve_category(c) for c in requested_categories}
        off_topic = sum(n for slug, n in resolved.items() if slug not in wanted)
        if off_topic:
            result.add_warning(f"{off_topic}/{total} candidates outside requested categories")
    elif total >= MIN_CONCENTRATION_SAMPLE:
        slug, count = resolved.most_common(1)[0]
        if count / total > CATEGORY_CONCENTRATION_RATIO:
            result.add_warning(f"Category concentration: '{slug}' on {count}/{total} candidates")

    if result.warnings:
        logger.info("Discovery validation warnings: %s", result.warnings)
    return result

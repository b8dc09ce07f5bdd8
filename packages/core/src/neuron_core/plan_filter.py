from __future__ import annotations

import logging

from neuron_core.models import SuggestionPlan

logger = logging.getLogger(__name__)


def filter_plan(baseline, plan: SuggestionPlan, max_comments: int) -> SuggestionPlan:
    """Drop comments the baseline suppresses, then cap what remains.

    Provider order is treated as priority order, so truncation keeps the
    first ``max_comments``. Tests are never suppressed by recurrence.
    """
    kept = []
    for comment in plan.comments:
        if baseline.should_skip(comment):
            logger.debug("Suppressing baselined suggestion %s:%d %r", comment.path, comment.line, comment.title)
            continue
        kept.append(comment)
    return SuggestionPlan(comments=kept[: max(0, max_comments)], tests=list(plan.tests))

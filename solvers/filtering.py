"""Filtering policy: decide which discovered widgets get solved.

Each rule looks at one widget and the options only, so the result is a pure
partition of the input.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from core.models import FilterOutcome, WidgetInfo, WidgetType

logger = logging.getLogger(__name__)


def exclusion_reason(
    captcha: WidgetInfo,
    solve_in_viewport_only: bool = False,
    solve_score_based: bool = False,
    solve_inactive_challenges: bool = False,
) -> Optional[str]:
    """Name of the option that excludes *captcha*, or ``None``."""
    if (
        captcha.widget_type == WidgetType.INVISIBLE
        and not captcha.has_active_challenge_popup
        and not solve_inactive_challenges
    ):
        return "solveInactiveChallenges"
    if captcha.widget_type == WidgetType.SCORE and not solve_score_based:
        return "solveScoreBased"
    if (
        captcha.widget_type == WidgetType.CHECKBOX
        and not captcha.is_in_viewport
        and solve_in_viewport_only
    ):
        return "solveInViewportOnly"
    return None


def filter_recaptchas(
    captchas: Iterable[WidgetInfo],
    solve_in_viewport_only: bool = False,
    solve_score_based: bool = False,
    solve_inactive_challenges: bool = False,
) -> Tuple[List[WidgetInfo], List[FilterOutcome]]:
    """Split widgets into the ones to solve and the excluded ones.

    Args:
        captchas: Widgets from a discovery pass.
        solve_in_viewport_only: Skip checkbox widgets outside the viewport.
        solve_score_based: Solve score widgets too.
        solve_inactive_challenges: Solve invisible widgets whose challenge
            popup is not open.

    Returns:
        ``(kept, excluded)``; every input widget lands in exactly one.
    """
    kept: List[WidgetInfo] = []
    excluded: List[FilterOutcome] = []
    for captcha in captchas:
        reason = exclusion_reason(
            captcha,
            solve_in_viewport_only=solve_in_viewport_only,
            solve_score_based=solve_score_based,
            solve_inactive_challenges=solve_inactive_challenges,
        )
        if reason is None:
            kept.append(captcha)
            continue
        logger.debug(
            "Filtered out captcha based on provided options "
            "(id: %s, reason: %s)",
            captcha.id, reason,
        )
        excluded.append(
            FilterOutcome(
                captcha=captcha, filtered=True, filtered_reason=reason
            )
        )
    return kept, excluded

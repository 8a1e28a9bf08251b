"""Concurrent fan-out of per-widget provider calls."""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

from core.models import Solution, SolutionsResult, WidgetInfo, first_error

SolveOne = Callable[
    [aiohttp.ClientSession, WidgetInfo, Optional[str], Dict[str, Any]],
    Awaitable[Solution],
]


async def run_batch(
    captchas: List[WidgetInfo],
    solve_one: SolveOne,
    auth_token: Optional[str],
    opts: Dict[str, Any],
    session: Optional[aiohttp.ClientSession] = None,
) -> SolutionsResult:
    """Solve every widget concurrently and wait for all of them.

    *solve_one* must not raise; per-widget failures live on the returned
    solutions.  A private session is opened when *session* is ``None``.

    Returns:
        One solution per widget; ``error`` is the first per-widget error.
    """
    own_session = session is None
    if own_session:
        session = aiohttp.ClientSession()
    try:
        solutions = await asyncio.gather(
            *(
                solve_one(session, captcha, auth_token, opts)
                for captcha in captchas
            )
        )
    finally:
        if own_session:
            await session.close()

    return SolutionsResult(
        solutions=list(solutions),
        error=first_error(*(s.error for s in solutions)),
    )

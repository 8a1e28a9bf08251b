"""Captcha-forwarder provider: generic submit-then-poll token service.

Wire contract::

    POST {endpoint}/forward-captcha            {siteKey, pageUrl, ttl}
        -> {"taskId": ...}
    GET  {endpoint}/forward-captcha/{taskId}/result
        -> 200 + token body, anything else means "not ready yet"

Both requests carry the auth token in the ``x-auth-token`` header.  Every
widget of a batch is solved concurrently and independently.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiohttp

from core.models import Solution, SolutionsResult, WidgetInfo
from solvers.batch import run_batch

logger = logging.getLogger(__name__)

PROVIDER_ID = "captcha-forwarder"

# Anything this short is an error page, not a token
MIN_TOKEN_LENGTH = 10

DEFAULT_OPTS: Dict[str, Any] = {
    "endpoint": "https://kript.duckdns.org/captcha-forwarder",
    "polling_interval": 2.0,
    "timeout": 180.0,
}


def _headers(auth_token: Optional[str]) -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "x-auth-token": auth_token or "",
    }


async def get_solutions(
    captchas: List[WidgetInfo],
    auth_token: Optional[str],
    options: Optional[Dict[str, Any]] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> SolutionsResult:
    """Solve a batch of widgets.

    Args:
        captchas: Widgets to solve.
        auth_token: Value of the ``x-auth-token`` header.
        options: ``endpoint``, ``polling_interval`` (s), ``timeout`` (s).
            Extra keys such as ``cookies`` are accepted and ignored.
        session: Optional shared aiohttp session; a private one is
            opened and closed otherwise.

    Returns:
        One solution per widget; ``error`` is the first per-widget error.
    """
    opts = {**DEFAULT_OPTS, **(options or {})}
    return await run_batch(captchas, solve_captcha, auth_token, opts, session)


async def solve_captcha(
    session: aiohttp.ClientSession,
    captcha: WidgetInfo,
    auth_token: Optional[str],
    opts: Dict[str, Any],
) -> Solution:
    """Submit one widget and wait for its token.

    Never raises: failures are stored on the returned solution.
    """
    solution = Solution(
        id=captcha.id, provider=PROVIDER_ID, vendor=captcha.vendor
    )
    try:
        if not captcha.sitekey or not captcha.url or not captcha.id:
            raise ValueError("Missing data in captcha")

        solution.requested_at = datetime.now(timezone.utc)
        logger.debug(
            "Sending to forwarder (sitekey: %s, page: %s)",
            captcha.sitekey, captcha.url,
        )
        async with session.post(
            f"{opts['endpoint']}/forward-captcha",
            json={
                "siteKey": captcha.sitekey,
                "pageUrl": captcha.url,
                "ttl": int(opts["timeout"] * 1000),
            },
            headers=_headers(auth_token),
        ) as resp:
            if not 200 <= resp.status < 300:
                raise RuntimeError(
                    f"forward-captcha POST failed: {resp.status}"
                )
            data = await resp.json(content_type=None)

        task_id = (data or {}).get("taskId")
        if not task_id:
            raise RuntimeError("No taskId returned from forwarder")
        solution.provider_task_id = str(task_id)

        token = await poll_for_token(session, str(task_id), auth_token, opts)
        solution.text = token
        solution.responded_at = datetime.now(timezone.utc)
        solution.duration = (
            solution.responded_at - solution.requested_at
        ).total_seconds()
        logger.info(
            "Forwarder token received (task: %s, %.1fs)",
            task_id, solution.duration,
        )
    except Exception as exc:
        solution.error = str(exc)
        logger.error(
            "Forwarder error for captcha %s: %s", captcha.id, exc
        )
    return solution


async def poll_for_token(
    session: aiohttp.ClientSession,
    task_id: str,
    auth_token: Optional[str],
    opts: Dict[str, Any],
) -> str:
    """Poll the result endpoint until a token arrives.

    Raises:
        TimeoutError: The overall deadline elapsed first.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + opts["timeout"]
    url = f"{opts['endpoint']}/forward-captcha/{task_id}/result"

    while loop.time() < deadline:
        async with session.get(url, headers=_headers(auth_token)) as resp:
            if resp.status == 200:
                token = (await resp.text()).strip()
                if len(token) > MIN_TOKEN_LENGTH:
                    return token
        logger.debug("Task %s not ready yet", task_id)
        await asyncio.sleep(opts["polling_interval"])

    raise TimeoutError(f"Timeout waiting for token (taskId: {task_id})")

"""2Captcha provider over the legacy ``in.php`` / ``res.php`` API.

Follows the same per-widget contract as the forwarder provider: widgets are
solved concurrently, each ends with either a token or an error, and the
batch error is the first per-widget error.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiohttp

from core.models import (
    Solution,
    SolutionsResult,
    WidgetInfo,
    WidgetType,
)
from solvers.batch import run_batch

logger = logging.getLogger(__name__)

PROVIDER_ID = "2captcha"
NOT_READY = "CAPCHA_NOT_READY"

DEFAULT_OPTS: Dict[str, Any] = {
    "endpoint": "http://2captcha.com",
    "polling_interval": 5.0,
    "timeout": 180.0,
}


def format_cookies(cookies: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    """Render browser cookies as ``name:value;name:value``."""
    if not cookies:
        return None
    pairs = [
        f"{c['name']}:{c['value']}"
        for c in cookies
        if c.get("name") and c.get("value") is not None
    ]
    return ";".join(pairs) or None


def build_submit_params(
    captcha: WidgetInfo, api_key: str, opts: Dict[str, Any]
) -> Dict[str, Any]:
    """Form fields of the ``in.php`` submission for one widget."""
    params: Dict[str, Any] = {
        "key": api_key,
        "method": "userrecaptcha",
        "googlekey": captcha.sitekey,
        "pageurl": captcha.url,
        "json": 1,
    }
    if captcha.widget_type == WidgetType.SCORE:
        params["version"] = "v3"
        if captcha.action:
            params["action"] = captcha.action
    elif captcha.widget_type == WidgetType.INVISIBLE:
        params["invisible"] = 1
    if captcha.is_enterprise:
        params["enterprise"] = 1
    if captcha.s:
        params["data-s"] = captcha.s
    if opts.get("user_agent"):
        params["userAgent"] = opts["user_agent"]
    cookies = format_cookies(opts.get("cookies"))
    if cookies:
        params["cookies"] = cookies
    return params


async def get_solutions(
    captchas: List[WidgetInfo],
    auth_token: Optional[str],
    options: Optional[Dict[str, Any]] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> SolutionsResult:
    """Solve a batch of widgets through 2Captcha.

    Args:
        captchas: Widgets to solve.
        auth_token: 2Captcha API key.
        options: ``endpoint``, ``polling_interval`` (s), ``timeout`` (s),
            ``cookies`` and ``user_agent`` of the browser session.
        session: Optional shared aiohttp session.

    Returns:
        One solution per widget; ``error`` is the first per-widget error.
    """
    opts = {**DEFAULT_OPTS, **(options or {})}
    return await run_batch(captchas, solve_captcha, auth_token, opts, session)


async def solve_captcha(
    session: aiohttp.ClientSession,
    captcha: WidgetInfo,
    api_key: Optional[str],
    opts: Dict[str, Any],
) -> Solution:
    """Submit one widget to 2Captcha and wait for its token."""
    solution = Solution(
        id=captcha.id, provider=PROVIDER_ID, vendor=captcha.vendor
    )
    try:
        if not captcha.sitekey or not captcha.url or not captcha.id:
            raise ValueError("Missing data in captcha")
        if not api_key:
            raise ValueError("Missing 2Captcha API key")

        solution.requested_at = datetime.now(timezone.utc)
        logger.info(
            "Submitting %s to 2Captcha (sitekey: %s...)",
            captcha.widget_type.value, captcha.sitekey[:20],
        )
        async with session.post(
            f"{opts['endpoint']}/in.php",
            data=build_submit_params(captcha, api_key, opts),
        ) as resp:
            data = await resp.json(content_type=None)

        if data.get("status") != 1:
            raise RuntimeError(
                f"2Captcha Error: {data.get('request', 'UNKNOWN_ERROR')}"
            )
        request_id = str(data["request"])
        solution.provider_task_id = request_id

        solution.text = await poll_for_token(
            session, request_id, api_key, opts
        )
        solution.responded_at = datetime.now(timezone.utc)
        solution.duration = (
            solution.responded_at - solution.requested_at
        ).total_seconds()
        logger.info(
            "2Captcha token received (ID: %s, %.1fs)",
            request_id, solution.duration,
        )
    except Exception as exc:
        solution.error = str(exc)
        logger.error("2Captcha error for captcha %s: %s", captcha.id, exc)
    return solution


async def poll_for_token(
    session: aiohttp.ClientSession,
    request_id: str,
    api_key: str,
    opts: Dict[str, Any],
) -> str:
    """Poll ``res.php`` until the token is ready.

    Raises:
        RuntimeError: 2Captcha reported an error other than "not ready".
        TimeoutError: The overall deadline elapsed first.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + opts["timeout"]
    params = {
        "key": api_key,
        "action": "get",
        "id": request_id,
        "json": 1,
    }

    while loop.time() < deadline:
        await asyncio.sleep(opts["polling_interval"])
        async with session.get(
            f"{opts['endpoint']}/res.php", params=params
        ) as resp:
            try:
                data = await resp.json(content_type=None)
            except (aiohttp.ContentTypeError, ValueError):
                continue

        if data.get("status") == 1:
            return data["request"]
        code = data.get("request")
        if code == NOT_READY:
            logger.debug("Still waiting (ID: %s)", request_id)
            continue
        raise RuntimeError(f"2Captcha Error: {code}")

    raise TimeoutError(
        f"Timeout waiting for token (taskId: {request_id})"
    )

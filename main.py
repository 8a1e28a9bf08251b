"""
reCAPTCHA Solver - Command Line Entry Point

Opens a page in Chromium, finds every reCAPTCHA widget on it, requests
tokens from the configured provider and writes them back into the page.

Usage:
    python main.py https://example.com/login
    python main.py https://example.com/login --visible --retries 2
    python main.py https://example.com/login --provider 2captcha --token KEY
    python main.py https://example.com/login --output result.json
"""
from dotenv import load_dotenv

# Load environment variables from .env file into os.environ
load_dotenv()

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from playwright.async_api import async_playwright
from rich import box
from rich.console import Console
from rich.table import Table

from core.config import SolverSettings
from core.logging_setup import setup_logging
from core.models import SolveResult
from solvers.errors import RecaptchaSolveError
from solvers.recaptcha import RecaptchaSolver

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find and solve reCAPTCHA widgets on a web page"
    )
    parser.add_argument("url", help="Page to open")
    parser.add_argument("--visible", action="store_true", help="Show browser")
    parser.add_argument(
        "--retries", type=int, default=None,
        help="Failed attempts tolerated (0 = a single attempt)",
    )
    parser.add_argument(
        "--timeout", type=int, default=None,
        help="Wait for the reCAPTCHA client per scan, in milliseconds",
    )
    parser.add_argument(
        "--provider", type=str, default=None,
        help="Provider id (captcha-forwarder, 2captcha)",
    )
    parser.add_argument(
        "--token", type=str, default=None, help="Provider auth token / API key"
    )
    parser.add_argument(
        "--output", type=str, default=None, help="Write the JSON result here"
    )
    return parser


def apply_args(settings: SolverSettings, args: argparse.Namespace) -> None:
    """Let command line flags override the loaded settings."""
    if args.visible:
        settings.headless = False
    if args.retries is not None:
        settings.retries_limit = args.retries
    if args.timeout is not None:
        settings.captcha_element_wait_timeout = args.timeout
    if args.provider:
        settings.provider_id = args.provider
    if args.token:
        settings.provider_token = args.token


def render_result(console: Console, result: SolveResult) -> None:
    """Print discovered widgets and injection outcomes as tables."""
    widgets = Table(title="reCAPTCHA Widgets", box=box.ROUNDED)
    widgets.add_column("ID", style="cyan")
    widgets.add_column("Type")
    widgets.add_column("Sitekey")
    widgets.add_column("Enterprise", justify="center")
    widgets.add_column("In Viewport", justify="center")
    widgets.add_column("Filtered", justify="left")

    for captcha in result.captchas:
        widgets.add_row(
            captcha.id,
            captcha.widget_type.value,
            captcha.sitekey,
            "yes" if captcha.is_enterprise else "no",
            "yes" if captcha.is_in_viewport else "no",
            "",
        )
    for outcome in result.filtered:
        widgets.add_row(
            outcome.id,
            outcome.captcha.widget_type.value,
            outcome.captcha.sitekey,
            "yes" if outcome.captcha.is_enterprise else "no",
            "yes" if outcome.captcha.is_in_viewport else "no",
            f"[yellow]{outcome.filtered_reason}[/yellow]",
        )
    console.print(widgets)

    solutions = {s.id: s for s in result.solutions}
    injections = Table(title="Injections", box=box.ROUNDED)
    injections.add_column("ID", style="cyan")
    injections.add_column("Status", justify="center")
    injections.add_column("Response Field", justify="center")
    injections.add_column("Callback", justify="center")
    injections.add_column("Provider Time", justify="right")
    injections.add_column("Error")

    for injection in result.solved:
        solution = solutions.get(injection.id)
        duration = (
            f"{solution.duration:.1f}s"
            if solution is not None and solution.duration is not None
            else "-"
        )
        injections.add_row(
            injection.id,
            "[green]SOLVED[/green]" if injection.is_solved else "[red]FAILED[/red]",
            "yes" if injection.response_element else "no",
            "yes" if injection.response_callback else "no",
            duration,
            injection.error or (solution.error if solution else "") or "",
        )
    console.print(injections)

    if result.error:
        console.print(f"[bold red]Error:[/bold red] {result.error}")


async def run(args: argparse.Namespace) -> int:
    """Solve the page named by *args* and return the process exit code."""
    settings = SolverSettings()
    apply_args(settings, args)
    setup_logging(settings.log_level)

    if not settings.provider_token:
        logger.warning(
            "No provider token configured; set PROVIDER_TOKEN or pass --token"
        )

    console = Console()
    solver = RecaptchaSolver(settings)

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=settings.headless)
        try:
            context = await browser.new_context()
            page = await context.new_page()
            logger.info("Opening %s", args.url)
            await page.goto(args.url, wait_until="domcontentloaded")
            result = await solver.solve_recaptchas(page)
        except RecaptchaSolveError as exc:
            logger.error("Solving failed: %s", exc)
            return 1
        finally:
            await browser.close()

    render_result(console, result)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2)
        logger.info("Result written to %s", args.output)

    return 0 if result.is_solved else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Stopped (KeyboardInterrupt)")
        return 1


if __name__ == "__main__":
    sys.exit(main())

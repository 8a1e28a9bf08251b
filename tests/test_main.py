"""
Tests for the command line entry point helpers.
"""

from rich.console import Console

from core.config import SolverSettings
from core.models import (
    FilterOutcome,
    InjectionResult,
    Solution,
    SolveResult,
    WidgetInfo,
    WidgetType,
)
from main import apply_args, build_parser, render_result


class TestArguments:
    """Test argument parsing and settings overrides."""

    def test_defaults_leave_settings_untouched(self):
        args = build_parser().parse_args(["https://example.com"])
        settings = SolverSettings(retries_limit=2)

        apply_args(settings, args)

        assert args.url == "https://example.com"
        assert settings.retries_limit == 2
        assert settings.provider_id == "captcha-forwarder"

    def test_flags_override_settings(self):
        args = build_parser().parse_args([
            "https://example.com",
            "--visible",
            "--retries", "0",
            "--timeout", "5000",
            "--provider", "2captcha",
            "--token", "KEY",
            "--output", "out.json",
        ])
        settings = SolverSettings(retries_limit=3)

        apply_args(settings, args)

        assert settings.headless is False
        assert settings.retries_limit == 0
        assert settings.captcha_element_wait_timeout == 5000
        assert settings.provider_id == "2captcha"
        assert settings.provider_token == "KEY"
        assert args.output == "out.json"


class TestRenderResult:
    """Test the result tables."""

    def test_tables_list_widgets_and_injections(self):
        result = SolveResult(
            captchas=[WidgetInfo(id="841543e13666", sitekey="6LcKey")],
            filtered=[FilterOutcome(
                captcha=WidgetInfo(id="score1", sitekey="6LcKey",
                                   widget_type=WidgetType.SCORE),
                filtered=True,
                filtered_reason="solveScoreBased",
            )],
            solutions=[Solution(id="841543e13666", provider="test",
                                text="token", duration=12.5)],
            solved=[InjectionResult(id="841543e13666",
                                    response_element=True)],
        )
        console = Console(record=True, width=200)

        render_result(console, result)

        text = console.export_text()
        assert "841543e13666" in text
        assert "solveScoreBased" in text
        assert "SOLVED" in text
        assert "12.5s" in text

    def test_error_is_printed(self):
        console = Console(record=True, width=200)

        render_result(console, SolveResult(
            error="no captcha element found on this page"
        ))

        assert "no captcha element found on this page" in console.export_text()

"""
Tests for response field lookup and solution injection.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from playwright.async_api import Error as PlaywrightError

from browser import probes, scripts
from browser.feedback import SOLVED_FILTER
from browser.injector import SolutionInjector
from browser.registry import ClientConfig
from core.models import Solution

TOKEN = "03AGdBq24-token-value"


def make_config(callback=True):
    fields = {"id": "841543e13666", "widgetId": 0, "sitekey": "6LcKey"}
    paths = {}
    if callback:
        fields["callback"] = {"__function__": "onSolved"}
        paths["callback"] = ("N", "N", "callback")
    return ClientConfig(registry_key="0", fields=fields, paths=paths)


class TestFindResponseField:
    """Test the form-first response field lookup."""

    @pytest.mark.asyncio
    async def test_field_inside_enclosing_form(self):
        form_field = MagicMock()
        handle = MagicMock()
        handle.as_element = MagicMock(return_value=form_field)
        anchor = MagicMock()
        anchor.evaluate = AsyncMock(return_value=True)
        anchor.evaluate_handle = AsyncMock(return_value=handle)
        page = MagicMock()
        page.query_selector = AsyncMock(return_value=anchor)

        field = await probes.find_response_field(page, "841543e13666")

        assert field is form_field
        anchor.evaluate_handle.assert_awaited_once_with(
            scripts.FORM_RESPONSE_FIELD, "[name='g-recaptcha-response']"
        )

    @pytest.mark.asyncio
    async def test_page_wide_fallback_without_form(self):
        body_field = MagicMock()
        anchor = MagicMock()
        anchor.evaluate = AsyncMock(return_value=False)
        anchor.evaluate_handle = AsyncMock()

        async def query_selector(selector):
            if selector.startswith("body "):
                return body_field
            return anchor

        page = MagicMock()
        page.query_selector = AsyncMock(side_effect=query_selector)

        field = await probes.find_response_field(page, "841543e13666")

        assert field is body_field
        page.query_selector.assert_any_await(
            "body [name='g-recaptcha-response']"
        )
        anchor.evaluate_handle.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_anchor_frame(self):
        page = MagicMock()
        page.query_selector = AsyncMock(return_value=None)
        page.wait_for_selector = AsyncMock(return_value=None)

        assert await probes.find_response_field(page, "x", 10) is None


class TestSolutionInjector:
    """Test SolutionInjector.inject."""

    def make_injector(self, config, popup=False, field=None):
        page = MagicMock()
        page.evaluate = AsyncMock(return_value=True)
        page.query_selector = AsyncMock(return_value=None)
        registry = MagicMock()
        registry.get_config_by_id = MagicMock(return_value=config)
        self.anchor = MagicMock()
        self.anchor.evaluate = AsyncMock()
        self.patches = [
            patch.object(probes, "find_anchor_frame",
                         AsyncMock(return_value=self.anchor)),
            patch.object(probes, "has_active_challenge_popup",
                         AsyncMock(return_value=popup)),
            patch.object(probes, "find_response_field",
                         AsyncMock(return_value=field)),
        ]
        for p in self.patches:
            p.start()
        return SolutionInjector(page, registry), page

    def teardown_method(self):
        for p in getattr(self, "patches", []):
            p.stop()

    @pytest.mark.asyncio
    async def test_writes_field_and_invokes_callback(self):
        field = MagicMock()
        field.evaluate = AsyncMock()
        injector, page = self.make_injector(make_config(), field=field)

        result = await injector.inject(
            Solution(id="841543e13666", provider="test", text=TOKEN)
        )

        assert result.response_element is True
        assert result.response_callback is True
        assert result.is_solved
        assert result.solved_at is not None
        assert result.error is None
        field.evaluate.assert_awaited_once_with(scripts.WRITE_RESPONSE, TOKEN)
        page.evaluate.assert_awaited_once_with(
            scripts.INVOKE_CALLBACK,
            {
                "clientKey": "0",
                "callbackPath": ["N", "N", "callback"],
                "token": TOKEN,
                "debugBinding": None,
            },
        )
        self.anchor.evaluate.assert_awaited_once_with(
            scripts.PAINT_FRAME, SOLVED_FILTER
        )

    @pytest.mark.asyncio
    async def test_callback_failure_is_recorded(self):
        field = MagicMock()
        field.evaluate = AsyncMock()
        injector, page = self.make_injector(make_config(), field=field)
        page.evaluate = AsyncMock(
            side_effect=PlaywrightError("Callback is not a function")
        )

        result = await injector.inject(
            Solution(id="841543e13666", provider="test", text=TOKEN)
        )

        assert result.response_element is True
        assert result.response_callback is False
        assert result.is_solved
        assert "Callback is not a function" in result.error

    @pytest.mark.asyncio
    async def test_without_callback_or_field(self):
        injector, page = self.make_injector(make_config(callback=False))

        result = await injector.inject(
            Solution(id="841543e13666", provider="test", text=TOKEN)
        )

        assert not result.is_solved
        page.evaluate.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_callback_is_skipped(self):
        config = make_config()
        config.fields["callback"] = ""
        field = MagicMock()
        field.evaluate = AsyncMock()
        injector, page = self.make_injector(config, field=field)

        result = await injector.inject(
            Solution(id="841543e13666", provider="test", text=TOKEN)
        )

        assert result.response_element is True
        assert result.response_callback is False
        assert result.error is None
        page.evaluate.assert_not_called()

    @pytest.mark.asyncio
    async def test_active_popup_is_hidden(self):
        bframe = MagicMock()
        bframe.evaluate = AsyncMock()
        injector, page = self.make_injector(make_config(), popup=True)
        page.query_selector = AsyncMock(return_value=bframe)

        await injector.inject(
            Solution(id="841543e13666", provider="test", text=TOKEN)
        )

        bframe.evaluate.assert_awaited_once_with(
            scripts.HIDE_CHALLENGE_WINDOW
        )

    @pytest.mark.asyncio
    async def test_unknown_widget(self):
        injector, _ = self.make_injector(None)

        result = await injector.inject(
            Solution(id="nope", provider="test", text=TOKEN)
        )

        assert not result.is_solved
        assert "nope" in result.error

    @pytest.mark.asyncio
    async def test_solution_without_token(self):
        injector, _ = self.make_injector(make_config())

        result = await injector.inject(
            Solution(id="841543e13666", provider="test", error="timeout")
        )

        assert not result.is_solved
        assert result.error == "timeout"

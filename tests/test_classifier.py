"""
Tests for widget classification.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from browser import classifier as classifier_module
from browser.classifier import (
    WidgetClassifier,
    callback_reference,
    classify_widget_type,
    extract_info,
)
from browser.registry import ClientConfig
from core.models import WidgetType


def make_config(**fields):
    base = {
        "id": "841543e13666",
        "widgetId": 0,
        "sitekey": "6LcTestSitekey",
        "callback": {"__function__": "onSolved"},
        "size": "normal",
    }
    base.update(fields)
    return ClientConfig(
        registry_key="0",
        fields=base,
        paths={"callback": ("N", "N", "callback")},
    )


def patch_probes(invisible=False, challenge_frame=False, popup=False,
                 enterprise=False, in_viewport=True, response_field=True):
    """Patch every DOM probe used by the classifier."""
    probes = classifier_module.probes
    return [
        patch.object(probes, "is_invisible",
                     AsyncMock(return_value=invisible)),
        patch.object(probes, "has_challenge_frame",
                     AsyncMock(return_value=challenge_frame)),
        patch.object(probes, "has_active_challenge_popup",
                     AsyncMock(return_value=popup)),
        patch.object(probes, "is_enterprise",
                     AsyncMock(return_value=enterprise)),
        patch.object(probes, "is_in_viewport",
                     AsyncMock(return_value=in_viewport)),
        patch.object(probes, "find_response_field",
                     AsyncMock(return_value=MagicMock()
                               if response_field else None)),
    ]


async def classify_with(config, **probe_results):
    page = MagicMock()
    page.url = "https://example.com/login"
    registry = MagicMock()
    registry.get_config_by_id = MagicMock(return_value=config)
    patches = patch_probes(**probe_results)
    for p in patches:
        p.start()
    try:
        return await WidgetClassifier(page, registry).classify("841543e13666")
    finally:
        for p in patches:
            p.stop()


class TestClassifyWidgetType:
    """Test the classification order."""

    def test_default_is_checkbox(self):
        assert classify_widget_type(False, False) == WidgetType.CHECKBOX

    def test_checkbox_never_reclassified(self):
        assert classify_widget_type(False, True) == WidgetType.CHECKBOX

    def test_invisible_with_challenge(self):
        assert classify_widget_type(True, True) == WidgetType.INVISIBLE

    def test_invisible_without_challenge_is_score(self):
        assert classify_widget_type(True, False) == WidgetType.SCORE


class TestExtractInfo:
    """Test field extraction from flattened records."""

    def test_callback_reference(self):
        assert callback_reference({"__function__": "onSolved"}) == "onSolved"
        assert callback_reference({"__function__": ""}) == "anonymous"
        assert callback_reference("window.onSolved") == "window.onSolved"
        assert callback_reference(None) is None

    def test_sitekey_is_trimmed(self):
        info = extract_info(make_config(sitekey="  6LcTestSitekey \n"))
        assert info["sitekey"] == "6LcTestSitekey"
        assert info["widget_id"] == 0
        assert info["display"].size == "normal"

    def test_missing_sitekey(self):
        assert extract_info(make_config(sitekey=None)) is None
        assert extract_info(make_config(sitekey="   ")) is None

    def test_action_and_s(self):
        info = extract_info(make_config(action="login", s="data-s-token"))
        assert info["action"] == "login"
        assert info["s"] == "data-s-token"


class TestWidgetClassifier:
    """Test WidgetClassifier.classify with patched probes."""

    @pytest.mark.asyncio
    async def test_checkbox_widget(self):
        widget = await classify_with(make_config())

        assert widget.widget_type == WidgetType.CHECKBOX
        assert widget.id == "841543e13666"
        assert widget.url == "https://example.com/login"
        assert widget.callback == "onSolved"
        assert widget.has_response_element is True
        assert widget.is_in_viewport is True
        assert widget.has_challenge_frame is False

    @pytest.mark.asyncio
    async def test_checkbox_ignores_challenge_frame(self):
        widget = await classify_with(make_config(), challenge_frame=True)

        assert widget.widget_type == WidgetType.CHECKBOX
        assert widget.has_challenge_frame is False

    @pytest.mark.asyncio
    async def test_invisible_widget_with_popup(self):
        widget = await classify_with(
            make_config(), invisible=True, challenge_frame=True, popup=True
        )

        assert widget.widget_type == WidgetType.INVISIBLE
        assert widget.is_invisible is True
        assert widget.has_active_challenge_popup is True

    @pytest.mark.asyncio
    async def test_score_widget(self):
        widget = await classify_with(
            make_config(action="submit"), invisible=True, enterprise=True
        )

        assert widget.widget_type == WidgetType.SCORE
        assert widget.is_enterprise is True
        assert widget.action == "submit"

    @pytest.mark.asyncio
    async def test_unknown_widget(self):
        page = MagicMock()
        registry = MagicMock()
        registry.get_config_by_id = MagicMock(return_value=None)

        assert await WidgetClassifier(page, registry).classify("x") is None

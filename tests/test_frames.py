"""
Tests for reCAPTCHA iframe addressing and selectors.
"""

import pytest

from browser.frames import (
    DEFAULT_FRAME_SOURCES,
    HOSTS,
    PROTOCOLS,
    challenge_popup_selector,
    enterprise_selector,
    frame_selector,
    generate_frame_sources,
    invisible_selector,
    widget_id_from_frame_name,
)


class TestFrameSources:
    """Test the generated iframe src prefixes."""

    def test_every_origin_and_path_combination(self):
        sources = generate_frame_sources()
        expected = len(PROTOCOLS) * len(HOSTS) * 2
        assert len(sources.anchor) == expected
        assert len(sources.bframe) == expected
        assert "https://www.google.com/recaptcha/api2/anchor" in sources.anchor
        assert (
            "http://recaptcha.net/recaptcha/enterprise/bframe"
            in sources.bframe
        )

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            DEFAULT_FRAME_SOURCES.for_role("userverify")


class TestSelectors:
    """Test selector builders."""

    def test_anchor_selector_targets_widget(self):
        selector = frame_selector("anchor", "841543e13666")
        parts = selector.split(",")
        assert len(parts) == len(DEFAULT_FRAME_SOURCES.anchor)
        assert all('[name^="a-841543e13666"]' in p for p in parts)
        assert all('[role="presentation"]' in p for p in parts)

    def test_bframe_selector_uses_challenge_prefix(self):
        selector = frame_selector("bframe", "abc")
        assert '[name^="c-abc"]' in selector
        assert "/bframe'" in selector

    def test_empty_widget_id_matches_all_widgets(self):
        assert '[name^="a-"]' in frame_selector("anchor")

    def test_enterprise_selector_covers_both_frames(self):
        selector = enterprise_selector("abc")
        assert '[name^="a-abc"]' in selector
        assert '[name^="c-abc"]' in selector
        assert "/enterprise/" in selector

    def test_invisible_selector(self):
        selector = invisible_selector("abc")
        assert '[name="a-abc"]' in selector
        assert "&size=invisible" in selector

    def test_challenge_popup_selector(self):
        assert '[name="c-abc"]' in challenge_popup_selector("abc")


class TestWidgetIdFromFrameName:
    """Test id extraction from iframe names."""

    def test_last_segment(self):
        assert widget_id_from_frame_name("a-841543e13666") == "841543e13666"

    def test_missing_name(self):
        assert widget_id_from_frame_name(None) == ""
        assert widget_id_from_frame_name("") == ""

"""Widget classification.

Builds a :class:`~core.models.WidgetInfo` for a widget id from its registry
record and a handful of DOM probes.  The interaction mode is decided by
:func:`classify_widget_type`:

* every widget starts as ``checkbox``;
* an invisible widget becomes ``invisible``;
* an invisible widget without any challenge frame becomes ``score``.

A checkbox widget is never reclassified, whatever frames exist.
"""

import logging
from typing import Any, Dict, Optional

from browser import probes
from browser.registry import ClientConfig, ClientRegistry, FUNCTION_MARKER
from browser.waiter import FRAME_WAIT_TIMEOUT
from core.models import VENDOR_RECAPTCHA, WidgetDisplay, WidgetInfo, WidgetType

logger = logging.getLogger(__name__)

DISPLAY_FIELDS = ("size", "top", "left", "width", "height", "theme")


def classify_widget_type(
    invisible: bool, challenge_frame: bool
) -> WidgetType:
    """Decide the interaction mode of a widget."""
    widget_type = WidgetType.CHECKBOX
    if invisible:
        widget_type = WidgetType.INVISIBLE
        if not challenge_frame:
            widget_type = WidgetType.SCORE
    return widget_type


def callback_reference(value: Any) -> Optional[str]:
    """Report a callback as a function name or an expression string."""
    if isinstance(value, dict) and FUNCTION_MARKER in value:
        return value[FUNCTION_MARKER] or "anonymous"
    if isinstance(value, str) and value:
        return value
    return None


def extract_info(config: ClientConfig) -> Optional[Dict[str, Any]]:
    """Pull the fields we care about out of a flattened record.

    Returns:
        A dict of :class:`WidgetInfo` keyword arguments, or ``None`` when
        the record carries no sitekey.
    """
    sitekey = config.get("sitekey")
    if not sitekey or not isinstance(sitekey, str) or not sitekey.strip():
        return None
    display = {
        name: config.get(name)
        for name in DISPLAY_FIELDS
    }
    info: Dict[str, Any] = {
        "id": config.id,
        "sitekey": sitekey.strip(),
        "vendor": VENDOR_RECAPTCHA,
        "widget_id": config.get("widgetId"),
        "callback": callback_reference(config.callback),
        "display": WidgetDisplay(**display),
        "s": config.get("s"),
    }
    if config.get("action"):
        info["action"] = config.get("action")
    return info


class WidgetClassifier:
    """Classify widget ids found on one page."""

    def __init__(
        self,
        page: Any,
        registry: ClientRegistry,
        frame_wait_timeout: int = FRAME_WAIT_TIMEOUT,
    ) -> None:
        self.page = page
        self.registry = registry
        self.frame_wait_timeout = frame_wait_timeout

    async def classify(self, widget_id: str) -> Optional[WidgetInfo]:
        """Build the :class:`WidgetInfo` of a widget.

        Args:
            widget_id: External widget id.

        Returns:
            The classified widget, or ``None`` when the registry has no
            record with a sitekey for it.
        """
        config = self.registry.get_config_by_id(widget_id)
        if config is None:
            return None
        info = extract_info(config)
        if info is None:
            logger.debug(" - no sitekey for widget %s", widget_id)
            return None

        page = self.page
        response_field = await probes.find_response_field(
            page, widget_id, self.frame_wait_timeout
        )
        invisible = await probes.is_invisible(page, widget_id)
        info.update(
            url=page.url,
            has_response_element=response_field is not None,
            is_enterprise=await probes.is_enterprise(page, widget_id),
            is_in_viewport=await probes.is_in_viewport(page, widget_id),
            is_invisible=invisible,
        )

        popup = challenge_frame = False
        if invisible:
            popup = await probes.has_active_challenge_popup(page, widget_id)
            challenge_frame = await probes.has_challenge_frame(
                page, widget_id
            )
        widget = WidgetInfo(
            widget_type=classify_widget_type(invisible, challenge_frame),
            has_active_challenge_popup=popup,
            has_challenge_frame=challenge_frame,
            **info,
        )
        logger.debug(" - captchas:info %s", widget)
        return widget

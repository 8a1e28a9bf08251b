"""Client registry introspection.

The page keeps its widgets in ``___grecaptcha_cfg.clients``: a map keyed by
opaque numeric ids whose values are nested objects with generated keys.
:class:`ClientRegistry` reads a bounded snapshot of that map, lists the
widget ids visible in the DOM and maps an id to its flattened
configuration record.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from browser import scripts
from browser.feedback import BUSY_FILTER, paint_frame
from browser.frames import frame_selector, widget_id_from_frame_name
from browser.waiter import FRAME_WAIT_TIMEOUT, wait_for_element

logger = logging.getLogger(__name__)

HTML_MARKER = "__html__"
FUNCTION_MARKER = "__function__"
FLATTEN_LEVELS = 2
SNAPSHOT_DEPTH = FLATTEN_LEVELS + 1

Path = Tuple[str, ...]


def is_html(value: Any) -> bool:
    return isinstance(value, dict) and HTML_MARKER in value


def is_function(value: Any) -> bool:
    return isinstance(value, dict) and FUNCTION_MARKER in value


def is_object(value: Any) -> bool:
    return isinstance(value, dict) and not (
        is_html(value) or is_function(value)
    )


def flatten_object(
    item: Dict[str, Any],
    levels: int = FLATTEN_LEVELS,
    ignore_html: bool = True,
) -> Tuple[Dict[str, Any], Dict[str, Path]]:
    """Flatten a nested client record a fixed number of levels.

    Each level lifts the inner keys of object values to the top.  An
    inner value that is itself an object is stored under
    ``obj_<outer>_<inner>`` so generated keys of different branches do not
    collide; primitives keep their inner key.  The second level works on
    the result of the first, so primitives nested three deep surface too.

    Args:
        item: Snapshot of one client.
        levels: Number of flattening passes.
        ignore_html: Skip DOM node markers.

    Returns:
        ``(flat, paths)`` where *paths* maps each flat key to the key path
        of its value inside *item*.
    """
    flat: Dict[str, Any] = {}
    paths: Dict[str, Path] = {}
    source = item
    source_paths: Dict[str, Path] = {key: (key,) for key in item}

    for _ in range(levels):
        if flat:
            source, source_paths = flat, dict(paths)
        for key in list(source):
            value = source[key]
            if ignore_html and is_html(value):
                continue
            if is_object(value):
                for inner_key, inner_value in list(value.items()):
                    if ignore_html and is_html(inner_value):
                        continue
                    if is_object(inner_value):
                        name = f"obj_{key}_{inner_key}"
                    else:
                        name = str(inner_key)
                    flat[name] = inner_value
                    paths[name] = source_paths[key] + (inner_key,)
            else:
                flat[key] = value
                paths[key] = source_paths[key]
    return flat, paths


def get_key_by_value(obj: Dict[str, Any], value: Any) -> Optional[str]:
    """Return the first key of *obj* whose value equals *value*."""
    for key, candidate in obj.items():
        if candidate == value and not isinstance(candidate, dict):
            return key
    return None


@dataclass
class ClientConfig:
    """Flattened configuration record of one widget.

    Attributes:
        registry_key: Key of the client in ``___grecaptcha_cfg.clients``.
        fields: Flattened fields; ``id`` is the external widget id and
            ``widgetId`` the internal numeric handle.
        paths: Flat key -> path of the value inside the live client.
    """

    registry_key: str
    fields: Dict[str, Any]
    paths: Dict[str, Path] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.fields["id"]

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    @property
    def callback(self) -> Any:
        return self.fields.get("callback")

    @property
    def callback_path(self) -> Optional[Path]:
        return self.paths.get("callback")


class ClientRegistry:
    """Read access to the page's client registry and widget iframes.

    The registry snapshot is taken once by :meth:`load` and reused by
    :meth:`get_config_by_id`; call :meth:`load` again to refresh it.
    """

    def __init__(
        self,
        page: Any,
        debug_binding: Optional[str] = None,
        visual_feedback: bool = True,
        frame_wait_timeout: int = FRAME_WAIT_TIMEOUT,
    ) -> None:
        self.page = page
        self.debug_binding = debug_binding
        self.visual_feedback = visual_feedback
        self.frame_wait_timeout = frame_wait_timeout
        self._clients: Optional[Dict[str, Any]] = None

    @property
    def clients(self) -> Optional[Dict[str, Any]]:
        return self._clients

    async def load(self) -> Optional[Dict[str, Any]]:
        """Snapshot the registry; ``None`` when the page has no widgets."""
        snapshot = await self.page.evaluate(
            scripts.REGISTRY_SNAPSHOT,
            {
                "maxDepth": SNAPSHOT_DEPTH,
                "debugBinding": self.debug_binding,
            },
        )
        self._clients = snapshot or None
        logger.debug(
            "Registry snapshot: %d client(s)",
            len(self._clients or {}),
        )
        return self._clients

    async def _anchor_frames(self) -> List[Any]:
        selector = frame_selector("anchor", "")
        if not await wait_for_element(
            self.page, selector, self.frame_wait_timeout
        ):
            return []
        return list(await self.page.query_selector_all(selector))

    async def _visible_ids(self, frames: List[Any]) -> List[str]:
        ids = []
        for frame in frames:
            if not await frame.is_visible():
                continue
            await paint_frame(frame, BUSY_FILTER, self.visual_feedback)
            widget_id = widget_id_from_frame_name(
                await frame.get_attribute("name")
            )
            if widget_id:
                ids.append(widget_id)
        return ids

    async def _challenge_ids(self, frames: List[Any]) -> List[str]:
        ids = []
        for frame in frames:
            widget_id = widget_id_from_frame_name(
                await frame.get_attribute("name")
            )
            if not widget_id:
                continue
            if await self.page.query_selector_all(
                frame_selector("bframe", widget_id)
            ):
                ids.append(widget_id)
        return ids

    async def list_widget_ids(self) -> List[str]:
        """Ids of visible widgets first, then of widgets with a challenge.

        Returns:
            Deduplicated ids in first-seen order.
        """
        frames = await self._anchor_frames()
        visible = await self._visible_ids(frames)
        challenged = await self._challenge_ids(frames)
        ids = list(dict.fromkeys(visible + challenged))
        logger.debug(
            "Widget ids: visible=%s challenged=%s -> %s",
            visible, challenged, ids,
        )
        return ids

    def get_config_by_id(self, widget_id: str) -> Optional[ClientConfig]:
        """Find the client whose flattened form holds *widget_id*.

        Args:
            widget_id: External widget id (from the iframe name).

        Returns:
            The first matching :class:`ClientConfig`, or ``None``.
        """
        if not widget_id or not self._clients:
            return None
        for key, client in self._clients.items():
            if not is_object(client):
                continue
            flat, paths = flatten_object(client)
            if get_key_by_value(flat, widget_id) is None:
                continue
            flat["widgetId"] = flat.get("id")
            if "id" in paths:
                paths["widgetId"] = paths.pop("id")
            flat["id"] = widget_id
            logger.debug(
                " - get_config_by_id: %s -> client %s", widget_id, key
            )
            return ClientConfig(
                registry_key=str(key), fields=flat, paths=paths
            )
        logger.debug(" - get_config_by_id: no client for %s", widget_id)
        return None

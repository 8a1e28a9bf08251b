"""Frame addresses and CSS selectors for reCAPTCHA iframes.

reCAPTCHA is served from several hosts and paths, so the plausible iframe
``src`` prefixes are generated from protocol x host x path rather than
listed by hand.  Everything here is pure and stateless.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

PROTOCOLS: Tuple[str, ...] = ("http", "https")
HOSTS: Tuple[str, ...] = (
    "google.com",
    "www.google.com",
    "recaptcha.net",
    "www.recaptcha.net",
)
FRAME_PATHS = {
    "anchor": ("/recaptcha/api2/anchor", "/recaptcha/enterprise/anchor"),
    "bframe": ("/recaptcha/api2/bframe", "/recaptcha/enterprise/bframe"),
}
# Iframe names look like "a-841543e13666" (anchor) or "c-841543e13666"
NAME_PREFIXES = {"anchor": "a", "bframe": "c"}

RESPONSE_FIELD_SELECTOR = "[name='g-recaptcha-response']"
SCRIPT_TAG_SELECTOR = (
    'script[src*="/recaptcha/api.js"], '
    'script[src*="/recaptcha/enterprise.js"]'
)


@dataclass(frozen=True)
class FrameSources:
    """Every plausible ``src`` prefix per frame role."""

    anchor: Tuple[str, ...]
    bframe: Tuple[str, ...]

    def for_role(self, role: str) -> Tuple[str, ...]:
        if role not in FRAME_PATHS:
            raise ValueError(f"Unknown frame role: {role}")
        return getattr(self, role)


def generate_frame_sources() -> FrameSources:
    """Build the full protocol x host x path prefix set."""
    origins = [
        f"{proto}://{host}" for proto in PROTOCOLS for host in HOSTS
    ]
    return FrameSources(
        anchor=tuple(
            origin + path
            for origin in origins
            for path in FRAME_PATHS["anchor"]
        ),
        bframe=tuple(
            origin + path
            for origin in origins
            for path in FRAME_PATHS["bframe"]
        ),
    )


DEFAULT_FRAME_SOURCES = generate_frame_sources()


def frame_selector(
    role: str = "anchor",
    widget_id: str = "",
    sources: Optional[FrameSources] = None,
) -> str:
    """Selector matching the *role* iframe of a widget.

    An empty *widget_id* matches the frames of every widget.

    Args:
        role: ``"anchor"`` (the checkbox frame) or ``"bframe"`` (the
            challenge frame).
        widget_id: Widget id to restrict the match to.
        sources: Prefix set, defaults to :data:`DEFAULT_FRAME_SOURCES`.

    Returns:
        A comma-joined CSS selector list.
    """
    sources = sources or DEFAULT_FRAME_SOURCES
    prefix = NAME_PREFIXES.get(role)
    return ",".join(
        f"iframe[src^='{src}'][name^=\"{prefix}-{widget_id}\"]"
        f"[role=\"presentation\"]"
        for src in sources.for_role(role)
    )


def _any_role_selector(prefix: str, widget_id: str) -> str:
    return ",".join(
        f"{prefix}[name^=\"{name}-{widget_id}\"]"
        for name in (NAME_PREFIXES["anchor"], NAME_PREFIXES["bframe"])
    )


def enterprise_selector(widget_id: str) -> str:
    """Anchor or challenge iframe served from an enterprise path."""
    return _any_role_selector(
        'iframe[src*="/recaptcha/"][src*="/enterprise/"]'
        '[role="presentation"]',
        widget_id,
    )


def viewport_probe_selector(widget_id: str) -> str:
    """Any reCAPTCHA iframe of the widget, used for viewport checks."""
    return _any_role_selector(
        'iframe[src*="recaptcha"][role="presentation"]', widget_id
    )


def invisible_selector(widget_id: str) -> str:
    """Anchor iframe carrying the invisible size marker."""
    return (
        'iframe[src*="/recaptcha/"][src*="/anchor"]'
        f'[name="a-{widget_id}"][src*="&size=invisible"]'
    )


def challenge_popup_selector(widget_id: str) -> str:
    """Challenge iframe of the widget, whether shown or hidden."""
    return (
        'iframe[src*="/recaptcha/"][src*="/bframe"]'
        f'[name="c-{widget_id}"][role="presentation"]'
    )


def widget_id_from_frame_name(name: Optional[str]) -> str:
    """Extract the widget id from an iframe name.

    ``a-841543e13666`` becomes ``841543e13666``.
    """
    if not name:
        return ""
    return name.split("-")[-1]

"""Data model shared by the scanner, the providers and the orchestrator.

All records are plain dataclasses so they can be logged, compared in tests
and converted to JSON-compatible dicts with :meth:`to_dict`.

Key exports:
    WidgetType: Interaction mode of a discovered widget.
    WidgetInfo: One classified reCAPTCHA widget (immutable per scan pass).
    FilterOutcome: A widget annotated with the filtering decision.
    Solution: Result of one provider round-trip.
    InjectionResult: Result of writing a token back into the page.
    FindResult / SolutionsResult / EnterResult / SolveResult: stage results.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

VENDOR_RECAPTCHA = "recaptcha"


class WidgetType(str, Enum):
    """Interaction modes a widget can be classified as.

    Members:
        CHECKBOX: Classic "I'm not a robot" box the user clicks.
        INVISIBLE: Silent widget that may open a challenge popup.
        SCORE: Invisible widget without any challenge frame (risk score).
    """

    CHECKBOX = "checkbox"
    INVISIBLE = "invisible"
    SCORE = "score"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class WidgetDisplay:
    """Rendering metrics reported by the client registry."""

    size: Optional[str] = None
    top: Optional[float] = None
    left: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    theme: Optional[str] = None


@dataclass(frozen=True)
class WidgetInfo:
    """A classified widget found during one scan pass.

    Attributes:
        id: External widget id taken from the iframe name.
        sitekey: Public sitekey of the widget.
        vendor: Vendor tag, always ``"recaptcha"`` for now.
        widget_type: Classification (checkbox / invisible / score).
        url: URL of the page the widget lives on.
        widget_id: Internal numeric handle from the client registry.
        callback: Callback reference (function name or expression).
        display: Rendering metrics.
        is_enterprise: Backing iframe is served from an enterprise path.
        is_in_viewport: Widget iframe lies inside the viewport.
        is_invisible: Anchor iframe carries ``size=invisible``.
        has_active_challenge_popup: A challenge popup is open in view.
        has_challenge_frame: A challenge frame exists at all.
        has_response_element: A response field could be located.
        action: Optional action name (score widgets).
        s: Optional site-specific data token.
    """

    id: str
    sitekey: str
    vendor: str = VENDOR_RECAPTCHA
    widget_type: WidgetType = WidgetType.CHECKBOX
    url: Optional[str] = None
    widget_id: Any = None
    callback: Optional[str] = None
    display: WidgetDisplay = field(default_factory=WidgetDisplay)
    is_enterprise: bool = False
    is_in_viewport: bool = False
    is_invisible: bool = False
    has_active_challenge_popup: bool = False
    has_challenge_frame: bool = False
    has_response_element: bool = False
    action: Optional[str] = None
    s: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class FilterOutcome:
    """A widget plus the filtering decision taken for it."""

    captcha: WidgetInfo
    filtered: bool = False
    filtered_reason: Optional[str] = None

    @property
    def id(self) -> str:
        return self.captcha.id

    def to_dict(self) -> Dict[str, Any]:
        data = self.captcha.to_dict()
        data.update(
            filtered=self.filtered,
            filtered_reason=self.filtered_reason,
        )
        return data


@dataclass
class Solution:
    """Outcome of one provider round-trip for a single widget.

    ``text`` holds the token on success; ``error`` is set instead when the
    round-trip ended in a terminal failure.
    """

    id: str
    provider: str
    vendor: str = VENDOR_RECAPTCHA
    provider_task_id: Optional[str] = None
    text: Optional[str] = None
    requested_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    duration: Optional[float] = None
    error: Optional[str] = None

    @property
    def has_solution(self) -> bool:
        return bool(self.text) and not self.error

    def to_dict(self) -> Dict[str, Any]:
        data = _jsonable(asdict(self))
        data["has_solution"] = self.has_solution
        return data


@dataclass
class InjectionResult:
    """What happened when a token was written back into the page."""

    id: str
    vendor: str = VENDOR_RECAPTCHA
    response_element: bool = False
    response_callback: bool = False
    solved_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_solved(self) -> bool:
        return self.response_element or self.response_callback

    def to_dict(self) -> Dict[str, Any]:
        data = _jsonable(asdict(self))
        data["is_solved"] = self.is_solved
        return data


@dataclass
class FindResult:
    """Discovery result: kept widgets, filtered widgets, first error."""

    captchas: List[WidgetInfo] = field(default_factory=list)
    filtered: List[FilterOutcome] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class SolutionsResult:
    """Provider batch result."""

    solutions: List[Solution] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class EnterResult:
    """Injection batch result."""

    solved: List[InjectionResult] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class SolveResult:
    """Top-level result of :meth:`RecaptchaSolver.solve_recaptchas`."""

    captchas: List[WidgetInfo] = field(default_factory=list)
    filtered: List[FilterOutcome] = field(default_factory=list)
    solutions: List[Solution] = field(default_factory=list)
    solved: List[InjectionResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_solved(self) -> bool:
        return any(r.is_solved for r in self.solved)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "captchas": [c.to_dict() for c in self.captchas],
            "filtered": [f.to_dict() for f in self.filtered],
            "solutions": [s.to_dict() for s in self.solutions],
            "solved": [r.to_dict() for r in self.solved],
            "error": self.error,
        }


def first_error(*errors: Optional[str]) -> Optional[str]:
    """Return the first truthy error of *errors*, or ``None``."""
    for error in errors:
        if error:
            return error
    return None

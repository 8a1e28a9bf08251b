"""Solution provider records and the built-in provider registry.

A provider is anything with the signature::

    async def get_solutions(captchas, auth_token, options) -> SolutionsResult

Built-in providers are looked up by id; callers may also hand in their own
coroutine function.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.models import SolutionsResult, WidgetInfo
from solvers import forwarder, twocaptcha
from solvers.errors import ProviderConfigError

logger = logging.getLogger(__name__)

ProviderFn = Callable[
    [List[WidgetInfo], Optional[str], Dict[str, Any]],
    Awaitable[SolutionsResult],
]

# Placeholder token shipped in example configs
PLACEHOLDER_TOKEN = "XXXXXXX"

BUILTIN_PROVIDERS: Dict[str, ProviderFn] = {
    forwarder.PROVIDER_ID: forwarder.get_solutions,
    twocaptcha.PROVIDER_ID: twocaptcha.get_solutions,
}


@dataclass
class SolutionProvider:
    """A configured provider.

    Attributes:
        id: Built-in provider id, used when ``fn`` is not given.
        token: Auth token / API key handed to the provider.
        fn: Custom provider coroutine function.
        opts: Provider options (endpoint, polling interval, ...).
    """

    id: Optional[str] = None
    token: Optional[str] = None
    fn: Optional[ProviderFn] = None
    opts: Dict[str, Any] = field(default_factory=dict)


def resolve_provider_fn(provider: Optional[SolutionProvider]) -> ProviderFn:
    """Return the coroutine function that serves *provider*.

    Raises:
        ProviderConfigError: No usable provider, or an unknown id.
    """
    if (
        provider is None
        or (not provider.token and not provider.fn)
        or (provider.token == PLACEHOLDER_TOKEN and not provider.fn)
    ):
        raise ProviderConfigError(
            "Please provide a solution provider to the plugin."
        )
    if provider.fn:
        return provider.fn
    fn = BUILTIN_PROVIDERS.get(provider.id or "")
    if fn is None:
        raise ProviderConfigError(
            f"Cannot find builtin provider with id '{provider.id}'."
        )
    return fn

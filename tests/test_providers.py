"""
Tests for provider resolution.
"""

import pytest

from solvers import forwarder, twocaptcha
from solvers.errors import ProviderConfigError, RecaptchaSolveError
from solvers.providers import SolutionProvider, resolve_provider_fn


async def custom_provider(captchas, auth_token, options):
    return None


class TestResolveProviderFn:
    """Test resolve_provider_fn."""

    def test_builtin_providers(self):
        assert resolve_provider_fn(
            SolutionProvider(id="captcha-forwarder", token="t")
        ) is forwarder.get_solutions
        assert resolve_provider_fn(
            SolutionProvider(id="2captcha", token="t")
        ) is twocaptcha.get_solutions

    def test_custom_function_wins(self):
        provider = SolutionProvider(id="2captcha", fn=custom_provider)
        assert resolve_provider_fn(provider) is custom_provider

    @pytest.mark.parametrize("provider", [
        None,
        SolutionProvider(id="2captcha"),
        SolutionProvider(id="2captcha", token="XXXXXXX"),
    ])
    def test_missing_provider(self, provider):
        with pytest.raises(ProviderConfigError) as exc_info:
            resolve_provider_fn(provider)
        assert str(exc_info.value) == (
            "Please provide a solution provider to the plugin."
        )

    def test_unknown_builtin(self):
        with pytest.raises(ProviderConfigError) as exc_info:
            resolve_provider_fn(SolutionProvider(id="anticaptcha", token="t"))
        assert str(exc_info.value) == (
            "Cannot find builtin provider with id 'anticaptcha'."
        )

    def test_config_error_is_a_solve_error(self):
        assert issubclass(ProviderConfigError, RecaptchaSolveError)

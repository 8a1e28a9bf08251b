"""
Exceptions raised by the solver in strict (``throw_on_error``) mode.
"""


class RecaptchaSolveError(Exception):
    """A stage or the whole solve run ended with an error."""
    pass


class ProviderConfigError(RecaptchaSolveError):
    """No usable solution provider was configured."""
    pass

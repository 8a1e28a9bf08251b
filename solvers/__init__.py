"""
Solvers package for the reCAPTCHA solver.

Turns discovered widgets into solved ones: filtering, token providers and
the resolution loop that ties the browser side to the providers.

Submodules:
    recaptcha: ``RecaptchaSolver`` -- stage methods plus the retrying
        scan / solicit / inject loop.
    filtering: Filtering policy for checkbox, invisible and score widgets.
    providers: ``SolutionProvider`` records and the built-in provider table.
    forwarder: Captcha-forwarder provider (submit, then poll for a token).
    twocaptcha: 2Captcha provider over ``in.php`` / ``res.php``.
    batch: Concurrent per-widget fan-out shared by the providers.
    errors: ``RecaptchaSolveError`` and ``ProviderConfigError``.
"""

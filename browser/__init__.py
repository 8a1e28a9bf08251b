"""
Browser module for the reCAPTCHA solver.

Everything that touches a live Playwright ``Page`` or ``Frame`` lives here:

- **RecaptchaContentScript** - per-call facade that scans a page for widgets
  and writes solutions back into it.
- **ClientRegistry** - bounded snapshot and flattening of the page's
  ``___grecaptcha_cfg.clients`` registry.
- **WidgetClassifier** - turns a widget id into a classified ``WidgetInfo``.
- **SolutionInjector** - response-field and callback injection.

Submodules:
    content: ``RecaptchaContentScript`` facade.
    registry: ``ClientRegistry`` and the flattening helpers.
    classifier: ``WidgetClassifier``.
    injector: ``SolutionInjector``.
    probes: DOM probes and response-field lookup.
    waiter: ``wait_for_element`` readiness primitive.
    frames: iframe source prefixes and selector builders.
    feedback: cosmetic iframe tinting.
    scripts: Raw JS payloads evaluated in the page.
"""

from .content import RecaptchaContentScript

__all__ = ["RecaptchaContentScript"]

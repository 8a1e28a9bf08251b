"""
Core package for the reCAPTCHA solver.

Submodules:
    config: ``SolverSettings`` via Pydantic, env vars and ``.env`` support.
    models: Widget, solution and injection records plus stage results.
    logging_setup: Compressed rotating file + safe console logging.
"""

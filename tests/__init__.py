"""Skinminder Test Suite

Test organization:
- unit/notifications/: Preference store, authorization, scheduling, dispatcher, engine
- unit/routines/: Routine text parser
- unit/test_config_models.py, unit/test_cli.py: Config loading and the command line

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/notifications/

    # With coverage
    pytest --cov=skinminder --cov-report=term-missing
"""

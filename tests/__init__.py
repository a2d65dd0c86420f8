"""
POWERWATCH Test Suite

Test Organization:
    tests/
    ├── __init__.py          # This file
    ├── conftest.py          # Shared pytest fixtures
    ├── fixtures/            # Mock implementations (MockController)
    └── unit/                # Unit tests (no network, no iDRAC)

Running Tests:
    # Run all tests
    pytest tests/

    # Run with coverage
    pytest tests/ --cov=powerwatch --cov=services --cov-report=html

Requirements:
    pip install -e ".[test]"
"""

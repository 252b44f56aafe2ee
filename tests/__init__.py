"""
Site Publisher - Test Suite

This package contains all tests for the application.

Structure:
    unit/: Unit tests for individual components
    integration/: End-to-end deployments against a fake hosting provider

Running Tests:
    # Run all tests
    pytest

    # Skip the end-to-end deployments
    pytest -m "not integration"

    # Run specific test file
    pytest tests/unit/test_transfer.py
"""

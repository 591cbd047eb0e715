"""
Global pytest fixtures and configuration for test suite.

This module provides reusable fixtures for:
- Settings instances
- Sample email data
- Temporary .eml files
- Captured log events
"""

import os
from typing import Generator, List

import pytest
from structlog.testing import capture_logs

from eml_decoder.config import Settings
from tests.fixtures.emails import SAMPLE_EMAILS


@pytest.fixture
def mock_settings() -> Settings:
    """
    Create settings for testing with safe defaults.

    Returns:
        Settings instance with test configuration
    """
    return Settings(
        log_level="INFO",
        log_json=False,  # Easier to read in tests
        default_charset="utf-8",
        detect_unknown_charsets=True,
        max_nesting_depth=64,
        max_attachments=0,
    )


@pytest.fixture
def sample_eml_bytes() -> bytes:
    """
    Get simple plain text email bytes for basic tests.

    Returns:
        bytes of a simple .eml file
    """
    return SAMPLE_EMAILS["simple_plain_text"]


@pytest.fixture
def multipart_alternative_eml() -> bytes:
    """
    Get multipart email with both HTML and plain text.

    Returns:
        bytes of multipart/alternative email
    """
    return SAMPLE_EMAILS["multipart_alternative"]


@pytest.fixture
def nested_related_eml() -> bytes:
    """
    Get mixed > related > alternative email with an inline image and a PDF.

    Returns:
        bytes of nested multipart email
    """
    return SAMPLE_EMAILS["nested_related"]


@pytest.fixture
def signed_eml() -> bytes:
    """
    Get multipart/signed email.

    Returns:
        bytes of PGP/MIME signed email
    """
    return SAMPLE_EMAILS["signed"]


@pytest.fixture
def signed_inline_cid_eml() -> bytes:
    """
    Get S/MIME signed email whose signature part is inline with a Content-ID.

    Returns:
        bytes of multipart/signed email
    """
    return SAMPLE_EMAILS["signed_inline_cid"]


@pytest.fixture
def mixed_related_attachments_eml() -> bytes:
    """
    Get email with related bodies, two inline images and five attachments.

    Returns:
        bytes of multipart/mixed email
    """
    return SAMPLE_EMAILS["mixed_related_attachments"]


@pytest.fixture
def encoded_headers_eml() -> bytes:
    """
    Get email with RFC 2047 encoded, grouped and repeated headers.

    Returns:
        bytes of email with encoded headers
    """
    return SAMPLE_EMAILS["encoded_headers"]


@pytest.fixture
def malformed_eml() -> bytes:
    """
    Get malformed email for error handling tests.

    Returns:
        bytes of invalid RFC5322 data
    """
    return SAMPLE_EMAILS["malformed"]


@pytest.fixture
def tmp_eml_file(tmp_path) -> Generator[str, None, None]:
    """
    Create temporary .eml file for file-based tests.

    Args:
        tmp_path: pytest's temporary directory fixture

    Yields:
        Path to temporary .eml file
    """
    eml_path = tmp_path / "test_email.eml"
    eml_path.write_bytes(SAMPLE_EMAILS["simple_plain_text"])
    yield str(eml_path)
    # Cleanup is automatic with tmp_path


@pytest.fixture(autouse=True)
def captured_logs() -> Generator[List[dict], None, None]:
    """
    Capture structlog events instead of printing them.

    Yields:
        List of event dicts logged during the test
    """
    with capture_logs() as entries:
        yield entries


@pytest.fixture(autouse=True)
def reset_env_vars():
    """
    Reset environment variables before each test.

    This prevents test pollution from env var changes.
    """
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)


def pytest_configure(config):
    """
    Configure pytest with custom markers and settings.
    """
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (CLI, end-to-end)"
    )

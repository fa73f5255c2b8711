# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import a11yprobe  # noqa: F401
except ImportError:
    raise ImportError("a11yprobe is not installed. Run: pip install -e '.[dev]'") from None

import pytest

from tests._helpers import make_ctx, make_page


@pytest.fixture
def mock_page():
    return make_page()


@pytest.fixture
def ctx(mock_page):
    return make_ctx(mock_page)

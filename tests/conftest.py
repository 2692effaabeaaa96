# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Shared pytest fixtures and configuration for portal engine tests.

Sample data and builders live in :mod:`fixtures.portal_data` so that
``unittest.TestCase`` classes can use them too.
"""

import pytest

from community_portal.core.config import PortalConfig
from fixtures import portal_data


@pytest.fixture
def test_config():
    """Configuration with safe defaults and no environment overrides."""
    return PortalConfig(http_timeout=5)


@pytest.fixture
def sample_base_url():
    return "https://org.example.com"


@pytest.fixture
def form_record():
    return portal_data.form_record()


@pytest.fixture
def view_record():
    return portal_data.view_record()

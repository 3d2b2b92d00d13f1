# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Shared pytest fixtures and configuration for storage adapter tests.

This module provides common test fixtures, mock objects, and configuration
that can be used across all test modules.
"""

import pytest
from unittest.mock import MagicMock

from azure.core.credentials import TokenCredential

from EntityStorage.Http.core.registry import InMemoryServiceRegistry, ServiceReference
from EntityStorage.Http.models.connectors import ODataConnector


@pytest.fixture
def dummy_credential():
    """Mock TokenCredential returning a fixed token."""
    credential = MagicMock(spec=TokenCredential)
    credential.get_token.return_value = MagicMock(token="test_token_12345")
    return credential


@pytest.fixture
def sample_base_url():
    """Standard test base URL."""
    return "https://svc.example.com/odata"


@pytest.fixture
def odata_registry(sample_base_url):
    """Registry with one OData connector under ServiceReference('people')."""
    registry = InMemoryServiceRegistry()
    registry.register(ServiceReference("people"), ODataConnector(sample_base_url))
    return registry

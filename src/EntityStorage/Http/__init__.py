# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Entity storage over HTTP: OData, Azure table, blob and queue services.

Example::

    from EntityStorage.Http import StorageClient
    from EntityStorage.Http.core.registry import InMemoryServiceRegistry, ServiceReference
    from EntityStorage.Http.models.connectors import ODataConnector
"""

from .__version__ import __version__
from .client import StorageClient

__all__ = ["StorageClient", "__version__"]

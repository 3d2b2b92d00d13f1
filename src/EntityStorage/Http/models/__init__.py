# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Data models and type definitions for the storage adapter.

- :mod:`~EntityStorage.Http.models.connectors`: per-service connector configuration.
- :mod:`~EntityStorage.Http.models.entity`: entity descriptors and metadata lookups.
- :mod:`~EntityStorage.Http.models.references`: lazy relation references and tracked lists.
- :mod:`~EntityStorage.Http.models.filters`: filter trees and the OData formatter.
- :mod:`~EntityStorage.Http.models.query`: queries, commands and results.
- :mod:`~EntityStorage.Http.models.messages`: queue and blob wire models.

Note:
    This ``__init__.py`` does NOT import/export models. Import directly from
    the specific module files.
"""

__all__ = []

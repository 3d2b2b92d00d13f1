# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Operation namespace classes for the storage adapter.

This module contains the operation namespace classes that organize
related operations under intuitive namespaces:
- RecordOperations: record queries, entity saves and relation links
- QueryOperations: collection, blob listing and blob data queries
- ActionOperations: service action commands
"""

__all__ = []

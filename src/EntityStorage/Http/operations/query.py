# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Collection and blob query operations namespace."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator, List, Optional

from ..core.registry import ServiceReference
from ..models.entity import Entity
from ..models.query import BlobDataQuery, OperationKind, QueryParameters, RecordQuery
from ..models.references import EntityReference

if TYPE_CHECKING:
    from ..client import StorageClient


class QueryOperations:
    """
    Multi-entity queries.

    Accessed via ``client.query``.

    Example::

        for person in client.query.get(people, EnumerableQuery(Person), QueryParameters(top=50)):
            print(person.user_name)

        for ref in client.query.blobs(products, EnumerableQuery(Product, flt)):
            product = ref.get()
    """

    def __init__(self, client: "StorageClient") -> None:
        self._client = client

    def get(
        self,
        service_ref: ServiceReference,
        query: RecordQuery,
        parameters: Optional[QueryParameters] = None,
    ) -> Iterator[Entity]:
        """
        Execute a collection query lazily.

        Pages are requested as iteration proceeds, one at a time. With
        ``parameters.top`` set, further pages are requested with ``skip``
        advanced by ``top``.

        :param service_ref: Target service.
        :type service_ref: ~EntityStorage.Http.core.registry.ServiceReference
        :param query: Query describing the entities.
        :type query: ~EntityStorage.Http.models.query.RecordQuery
        :param parameters: Optional ``$top``/``$skip`` paging.
        :type parameters: ~EntityStorage.Http.models.query.QueryParameters or None
        :return: Generator of entities, marked as retrieved from storage.
        """
        if not isinstance(query, RecordQuery):
            raise TypeError("query must be an EnumerableQuery or RecordQuery")
        return self._iterate(service_ref, query, parameters)

    def _iterate(
        self,
        service_ref: ServiceReference,
        query: RecordQuery,
        parameters: Optional[QueryParameters],
    ) -> Iterator[Entity]:
        with self._client._scoped("query.get"):
            yield from self._client._dispatch(service_ref, OperationKind.ENUMERABLE_QUERY, query, parameters)

    def blobs(self, service_ref: ServiceReference, query: RecordQuery) -> List[EntityReference]:
        """
        List blob entities whose key path starts with the query's key values.

        The filter may only hold equality predicates on key fields with
        contiguous ordinals from 1, joined with AND.

        :return: Unresolved references; call ``get()`` to fetch each blob.
        :rtype: list[~EntityStorage.Http.models.references.EntityReference]
        """
        with self._client._scoped("query.blobs"):
            return self._client._dispatch(service_ref, OperationKind.BLOB_QUERY, query)

    def blob_data(self, service_ref: ServiceReference, query: BlobDataQuery) -> Optional[Entity]:
        """Fetch one blob body as an entity."""
        with self._client._scoped("query.blob_data"):
            return self._client._dispatch(service_ref, OperationKind.BLOB_DATA_QUERY, query)

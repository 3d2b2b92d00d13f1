# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Azure queue storage handler."""

from __future__ import annotations

import logging

from ..core._error_codes import (
    PROTOCOL_QUEUE_MESSAGE_COUNT,
    UNSUPPORTED_QUEUE_PARTITION,
    UNSUPPORTED_QUEUE_RESUBMIT,
)
from ..core.errors import ProtocolViolationError, UnsupportedOperationError
from ..core.registry import ServiceReference
from ..models.connectors import QueueConnector, SerializationLanguage
from ..models.entity import Entity, get_partition_value
from ..models.messages import QueueMessage
from ..models.query import SaveResult
from ._base import _StorageHandlerBase
from ._serializer import SerializerOptions

logger = logging.getLogger(__name__)

# Message envelopes always travel as XML; wrapped payloads use the connector's language.
_MESSAGE_OPTIONS = SerializerOptions(language=SerializationLanguage.XML)


class _QueueStorageHandler(_StorageHandlerBase):
    connector_type = QueueConnector

    def _save(self, service_ref: ServiceReference, entity_obj: Entity) -> SaveResult:
        """
        Post an entity to the queue.

        Entities other than :class:`~EntityStorage.Http.models.messages.QueueMessage`
        are serialized and wrapped in a message. The service does not echo the
        payload back, so a posted message has its data copied onto the
        returned instance.

        :raises ~EntityStorage.Http.core.errors.UnsupportedOperationError: If
            the entity was retrieved from storage or carries a partition value
            for a partitioned connector.
        :raises ~EntityStorage.Http.core.errors.ProtocolViolationError: If the
            response does not hold exactly one message.
        """
        if entity_obj.is_retrieved_from_storage:
            raise UnsupportedOperationError(
                "Queue messages cannot be resubmitted; create a new instance instead",
                subcode=UNSUPPORTED_QUEUE_RESUBMIT,
            )
        connector = self._connector(service_ref)
        if get_partition_value(entity_obj) is not None and connector.partition_key_field_name:
            raise UnsupportedOperationError(
                "Partitioned queue messages are not supported",
                subcode=UNSUPPORTED_QUEUE_PARTITION,
            )
        client = self._client(service_ref)

        if isinstance(entity_obj, QueueMessage):
            message = entity_obj
        else:
            message = QueueMessage(message_data=self._serializer.serialize(entity_obj, self._options(connector)))

        r = client.request("post", "messages", data=self._serializer.serialize(message, _MESSAGE_OPTIONS))
        returned = self._serializer.deserialize_enumerable(QueueMessage, r.content, _MESSAGE_OPTIONS)
        if len(returned) != 1:
            raise ProtocolViolationError(
                f"Queue save returned {len(returned)} messages; expected exactly one",
                subcode=PROTOCOL_QUEUE_MESSAGE_COUNT,
                details={"count": len(returned)},
            )
        posted = returned[0]
        posted.is_retrieved_from_storage = True
        logger.debug("Posted queue message %s", posted.message_id)

        if isinstance(entity_obj, QueueMessage):
            posted.message_data = entity_obj.message_data
            return SaveResult(is_successful=True, entity=posted)
        return SaveResult(is_successful=True, entity=entity_obj)

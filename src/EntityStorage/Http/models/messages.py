# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Azure queue and blob wire models."""

from __future__ import annotations

import datetime as _dt

from .entity import Entity, EntityField, entity


@entity(
    "QueueMessage",
    EntityField("MessageId", "message_id", is_key=True),
    EntityField("InsertionTime", "insertion_time", field_type=_dt.datetime),
    EntityField("ExpirationTime", "expiration_time", field_type=_dt.datetime),
    EntityField("PopReceipt", "pop_receipt"),
    EntityField("TimeNextVisible", "time_next_visible", field_type=_dt.datetime),
    EntityField("MessageText", "message_data", field_type=bytes),
)
class QueueMessage(Entity):
    """
    A queue message.

    ``message_data`` holds the raw payload; on the wire it travels
    base64-encoded in ``MessageText``. The service does not echo the payload
    back when a message is posted.
    """


@entity(
    "Blob",
    EntityField("Name", "name", is_key=True),
)
class BlobReference(Entity):
    """One entry of a container listing; ``name`` is the full blob path."""


__all__ = ["QueueMessage", "BlobReference"]

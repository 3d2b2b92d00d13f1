#!/usr/bin/env python3
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
EntityStorage.Http - Quickstart

Reads people from the public TripPin OData sample service, follows their
friend references, and optionally posts a notification message to an Azure
storage queue.

Prerequisites:
- EntityStorage-Http installed (``pip install -e .``)
- For the queue step: an Azure storage queue URL and Azure Identity credentials
  with the "Storage Queue Data Message Sender" role

Usage:
    python examples/basic/quickstart.py
"""

import sys

from azure.identity import InteractiveBrowserCredential

from EntityStorage.Http import StorageClient
from EntityStorage.Http.core import Authenticator, TokenCredentialAuthenticator
from EntityStorage.Http.core.config import StorageConfig
from EntityStorage.Http.core.errors import RemoteRequestError, StorageError
from EntityStorage.Http.core.registry import InMemoryServiceRegistry, ServiceReference
from EntityStorage.Http.models.connectors import ODataConnector, QueueConnector
from EntityStorage.Http.models.entity import Entity, EntityField, EntityRelation, entity
from EntityStorage.Http.models.query import EnumerableQuery, QueryParameters


@entity(
    "People",
    EntityField("UserName", "user_name", is_key=True),
    EntityField("FirstName", "first_name"),
    EntityField("LastName", "last_name"),
    EntityRelation("BestFriend", "best_friend", "Person"),
    EntityRelation("Friends", "friends", "Person", is_enumerable=True),
)
class Person(Entity):
    pass


@entity(
    "Notification",
    EntityField("Subject", "subject", is_key=True),
    EntityField("Body", "body"),
)
class Notification(Entity):
    pass


TRIPPIN = ServiceReference("trippin")
NOTIFICATIONS = ServiceReference("notifications")


class QueueOnlyAuthenticator(Authenticator):
    """Bearer tokens for the queue service only; TripPin is anonymous."""

    def __init__(self, inner: Authenticator) -> None:
        self._inner = inner

    def authenticate_client(self, service_ref, client):
        if service_ref != NOTIFICATIONS:
            return client
        return self._inner.authenticate_client(service_ref, client)


def list_people(client: StorageClient) -> None:
    print("\n👥 People (5 per page)")
    print("=" * 50)
    for person in client.query.get(TRIPPIN, EnumerableQuery(Person), QueryParameters(top=5)):
        friends = ", ".join(ref.keys["UserName"] for ref in person.friends) or "-"
        print(f"  {person.user_name:<20} {person.first_name} {person.last_name}  friends: {friends}")
        best_friend = person.best_friend.get()
        if best_friend is not None:
            print(f"    best friend: {best_friend.first_name} {best_friend.last_name}")


def post_notification(client: StorageClient) -> None:
    print("\n📨 Queue notification")
    print("=" * 50)
    result = client.records.save(NOTIFICATIONS, Notification(subject="quickstart", body="People listed"))
    print(f"✅ Posted: {result.is_successful}")


def main() -> None:
    registry = InMemoryServiceRegistry()
    registry.register(TRIPPIN, ODataConnector("services.odata.org/TripPinRESTierService"))

    queue_url = ""
    if sys.stdin.isatty():
        queue_url = input("Azure queue URL for a notification (blank to skip): ").strip()

    authenticator = None
    if queue_url:
        registry.register(NOTIFICATIONS, QueueConnector(queue_url))
        authenticator = QueueOnlyAuthenticator(
            TokenCredentialAuthenticator(InteractiveBrowserCredential(), scope="https://storage.azure.com/.default")
        )

    config = StorageConfig(enable_logging=True, log_level="INFO")
    try:
        with StorageClient(registry, authenticator, config) as client:
            list_people(client)
            if queue_url:
                post_notification(client)
    except RemoteRequestError as e:
        print(f"❌ Request failed ({e.status_code}): {e.message}")
        sys.exit(1)
    except StorageError as e:
        print(f"❌ {e.code}: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()

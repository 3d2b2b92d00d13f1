# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import datetime as dt
import json
import unittest
import uuid
import xml.etree.ElementTree as ET

from EntityStorage.Http.core._error_codes import PROTOCOL_MALFORMED_PAYLOAD
from EntityStorage.Http.core.errors import ProtocolViolationError
from EntityStorage.Http.data._serializer import (
    EntitySerializer,
    FieldSerialization,
    SerializerOptions,
    read_value,
    write_value,
)
from EntityStorage.Http.models.connectors import SerializationLanguage
from EntityStorage.Http.models.messages import QueueMessage
from EntityStorage.Http.models.references import EntityReference, EntityReferenceList

from fixtures.storage_models import Account, Category, Customer, Person
from fixtures.test_data import CATEGORY_ID, PERSON_RUSSELL, QUEUE_PUT_RESPONSE

JSON = SerializerOptions()
XML = SerializerOptions(language=SerializationLanguage.XML)


class TestValues(unittest.TestCase):
    def test_read_values(self):
        self.assertEqual(read_value(uuid.UUID, CATEGORY_ID), uuid.UUID(CATEGORY_ID))
        self.assertEqual(read_value(int, "7"), 7)
        self.assertTrue(read_value(bool, "True"))
        self.assertEqual(read_value(bytes, "aGVsbG8="), b"hello")
        self.assertEqual(
            read_value(dt.datetime, "2026-10-09T21:04:30Z"),
            dt.datetime(2026, 10, 9, 21, 4, 30, tzinfo=dt.timezone.utc),
        )
        self.assertEqual(
            read_value(dt.datetime, "Fri, 09 Oct 2026 21:04:30 GMT"),
            dt.datetime(2026, 10, 9, 21, 4, 30, tzinfo=dt.timezone.utc),
        )
        self.assertIsNone(read_value(int, None))

    def test_read_malformed_value(self):
        with self.assertRaises(ProtocolViolationError) as ctx:
            read_value(uuid.UUID, "not-a-guid")
        self.assertEqual(ctx.exception.subcode, PROTOCOL_MALFORMED_PAYLOAD)

    def test_write_values(self):
        self.assertEqual(write_value(uuid.UUID(CATEGORY_ID)), CATEGORY_ID)
        self.assertEqual(write_value(b"hello"), "aGVsbG8=")
        self.assertEqual(write_value(dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)), "2026-01-01T00:00:00Z")
        self.assertEqual(write_value(dt.date(2026, 1, 1)), "2026-01-01")


class TestJsonSerialization(unittest.TestCase):
    def setUp(self):
        self.serializer = EntitySerializer()

    def test_serialize_fields(self):
        person = Person(user_name="russellwhyte", first_name="Russell", age=32)
        body = json.loads(self.serializer.serialize(person, JSON))
        self.assertEqual(body, {"UserName": "russellwhyte", "FirstName": "Russell", "LastName": None, "Age": 32})

    def test_fields_only_omits_keys(self):
        options = JSON.with_(field_serialization=FieldSerialization.FIELDS_ONLY)
        body = json.loads(self.serializer.serialize(Person(user_name="a", first_name="A"), options))
        self.assertNotIn("UserName", body)
        self.assertEqual(body["FirstName"], "A")

    def test_extra_fields_appended(self):
        body = json.loads(self.serializer.serialize(Category(name="Tools"), JSON, {"PartitionKey": "contoso"}))
        self.assertEqual(list(body), ["CategoryId", "Name", "PartitionKey"])

    def test_serialize_relationships(self):
        person = Person(user_name="russellwhyte")
        person.best_friend = EntityReference(Person, {"UserName": "scottketchum"})
        person.friends = EntityReferenceList(Person, committed=[EntityReference(Person, {"UserName": "ronaldmundy"})])
        body = json.loads(self.serializer.serialize(person, JSON.with_(serialize_relationships=True)))
        self.assertEqual(body["BestFriend"], {"UserName": "scottketchum"})
        self.assertEqual(body["Friends"], [{"UserName": "ronaldmundy"}])

    def test_deserialize_entity_with_relations(self):
        options = JSON.with_(serialize_relationships=True)
        person = self.serializer.deserialize(Person, json.dumps(PERSON_RUSSELL).encode(), options)
        self.assertEqual(person.first_name, "Russell")
        self.assertEqual(person.age, 32)
        self.assertEqual(person.best_friend.keys, {"UserName": "scottketchum"})
        self.assertEqual([r.keys["UserName"] for r in person.friends], ["scottketchum", "ronaldmundy"])

    def test_relations_ignored_without_option(self):
        person = self.serializer.deserialize(Person, json.dumps(PERSON_RUSSELL).encode(), JSON)
        self.assertFalse(person.best_friend.has_value())

    def test_abstract_target_resolves_subtype(self):
        payload = {"@odata.type": "#Microsoft.Dynamics.CRM.customer", "accountid": CATEGORY_ID, "revenue": 12.5}
        account = self.serializer.from_object(Account, payload, JSON)
        self.assertIsInstance(account, Customer)
        self.assertEqual(account.revenue, 12.5)
        self.assertEqual(account.account_id, uuid.UUID(CATEGORY_ID))

    def test_abstract_target_without_type_annotation(self):
        self.assertIs(type(self.serializer.from_object(Account, {"name": "x"}, JSON)), Account)

    def test_deserialize_enumerable(self):
        people = self.serializer.deserialize_enumerable(Person, b'[{"UserName": "a"}, {"UserName": "b"}]', JSON)
        self.assertEqual([p.user_name for p in people], ["a", "b"])

    def test_enumerable_requires_array(self):
        with self.assertRaises(ProtocolViolationError):
            self.serializer.deserialize_enumerable(Person, b'{"UserName": "a"}', JSON)

    def test_invalid_json(self):
        with self.assertRaises(ProtocolViolationError) as ctx:
            self.serializer.deserialize(Person, b"<html>", JSON)
        self.assertEqual(ctx.exception.subcode, PROTOCOL_MALFORMED_PAYLOAD)

    def test_mapping_serialized_as_object(self):
        body = json.loads(self.serializer.serialize({"@odata.id": "https://svc/People('a')"}, JSON))
        self.assertEqual(body, {"@odata.id": "https://svc/People('a')"})


class TestXmlSerialization(unittest.TestCase):
    def setUp(self):
        self.serializer = EntitySerializer()

    def test_serialize_queue_message(self):
        root = ET.fromstring(self.serializer.serialize(QueueMessage(message_data=b"hello"), XML))
        self.assertEqual(root.tag, "QueueMessage")
        self.assertEqual([child.tag for child in root], ["MessageText"])
        self.assertEqual(root.findtext("MessageText"), "aGVsbG8=")

    def test_deserialize_queue_messages(self):
        messages = self.serializer.deserialize_enumerable(QueueMessage, QUEUE_PUT_RESPONSE.encode(), XML)
        self.assertEqual(len(messages), 1)
        message = messages[0]
        self.assertEqual(message.message_id, "5974b586-0df3-4e2d-ad0c-18e3892bfca2")
        self.assertEqual(message.insertion_time, dt.datetime(2026, 10, 9, 21, 4, 30, tzinfo=dt.timezone.utc))
        self.assertIsNone(message.message_data)

    def test_invalid_xml(self):
        with self.assertRaises(ProtocolViolationError):
            self.serializer.deserialize(QueueMessage, b"{not xml", XML)

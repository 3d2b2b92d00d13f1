# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import enum
import unittest
import uuid

from EntityStorage.Http.core._error_codes import CONFIG_ENTITY_INVALID, CONFIG_ENTITY_NOT_REGISTERED
from EntityStorage.Http.core.errors import ConfigurationError
from EntityStorage.Http.models.entity import (
    Entity,
    EntityField,
    EntityFieldKind,
    entity,
    format_key_segment,
    get_entity_descriptor,
    get_entity_field,
    get_entity_fields,
    get_entity_key_values,
    get_entity_name,
    get_entity_relation,
    get_entity_subtypes,
    get_entity_type,
    get_partition_value,
    is_entity_abstract,
    is_registered_entity,
    parse_key_segment,
)
from EntityStorage.Http.models.references import EntityReference, EntityReferenceList

from fixtures.storage_models import Account, Category, Customer, Person, ProductDetail


class _Color(enum.Enum):
    RED = "red"


class TestEntityLookups(unittest.TestCase):
    def test_name_and_fields(self):
        self.assertEqual(get_entity_name(Person), "People")
        self.assertEqual([f.name for f in get_entity_fields(Person)], ["UserName", "FirstName", "LastName", "Age"])
        self.assertEqual([f.name for f in get_entity_fields(Person, EntityFieldKind.KEYS)], ["UserName"])
        self.assertEqual(
            [f.name for f in get_entity_fields(Person, EntityFieldKind.FIELDS)], ["FirstName", "LastName", "Age"]
        )

    def test_key_ordinals_assigned_in_declaration_order(self):
        keys = get_entity_fields(ProductDetail, EntityFieldKind.KEYS)
        self.assertEqual([(k.name, k.ordinal) for k in keys], [("CategoryId", 1), ("Sku", 2)])

    def test_field_lookup_by_name_attribute_and_ordinal(self):
        self.assertEqual(get_entity_field(ProductDetail, "Sku").attribute, "sku")
        self.assertEqual(get_entity_field(ProductDetail, "category_id").name, "CategoryId")
        self.assertEqual(get_entity_field(ProductDetail, 2).name, "Sku")
        self.assertIsNone(get_entity_field(ProductDetail, 3))
        self.assertIsNone(get_entity_field(ProductDetail, "Missing"))

    def test_key_values_in_ordinal_order(self):
        category_id = uuid.uuid4()
        product = ProductDetail(sku="SKU-1", category_id=category_id, name="Widget")
        values = get_entity_key_values(product)
        self.assertEqual([(f.name, v) for f, v in values.items()], [("CategoryId", category_id), ("Sku", "SKU-1")])

    def test_relation_lookup(self):
        self.assertTrue(get_entity_relation(Person, "Friends").is_enumerable)
        self.assertIs(get_entity_relation(Person, "best_friend").target_type(), Person)
        self.assertIsNone(get_entity_relation(Person, "Enemies"))

    def test_inheritance_and_abstract(self):
        self.assertTrue(is_entity_abstract(Account))
        self.assertFalse(is_entity_abstract(Customer))
        self.assertEqual([f.name for f in get_entity_fields(Customer)], ["accountid", "name", "revenue"])
        self.assertIn(Customer, get_entity_subtypes(Account))
        self.assertIs(get_entity_type("Customer"), Customer)

    def test_partition_value(self):
        self.assertEqual(get_partition_value(Category(tenant="contoso")), "contoso")
        self.assertIsNone(get_partition_value(Person()))

    def test_unregistered_type(self):
        class Loose(Entity):
            pass

        self.assertFalse(is_registered_entity(Loose))
        with self.assertRaises(ConfigurationError) as ctx:
            get_entity_descriptor(Loose)
        self.assertEqual(ctx.exception.subcode, CONFIG_ENTITY_NOT_REGISTERED)
        with self.assertRaises(ConfigurationError):
            get_entity_type("NoSuchEntity")


class TestEntityInstances(unittest.TestCase):
    def test_defaults(self):
        person = Person(user_name="russellwhyte")
        self.assertIsNone(person.first_name)
        self.assertFalse(person.is_retrieved_from_storage)
        self.assertIsInstance(person.best_friend, EntityReference)
        self.assertFalse(person.best_friend.has_value())
        self.assertIsInstance(person.friends, EntityReferenceList)
        self.assertEqual(len(person.friends), 0)

    def test_unknown_field_rejected(self):
        with self.assertRaises(TypeError):
            Person(nickname="rusty")

    def test_equality_by_field_values(self):
        self.assertEqual(Person(user_name="a", age=1), Person(user_name="a", age=1))
        self.assertNotEqual(Person(user_name="a"), Person(user_name="b"))
        self.assertNotEqual(Person(user_name="a"), Category())


class TestRegistrationValidation(unittest.TestCase):
    def test_duplicate_member_names(self):
        with self.assertRaises(ConfigurationError) as ctx:

            @entity("Dupes", EntityField("Id", "id", is_key=True), EntityField("Id", "other"))
            class Dupes(Entity):
                pass

        self.assertEqual(ctx.exception.subcode, CONFIG_ENTITY_INVALID)

    def test_sparse_ordinals(self):
        with self.assertRaises(ConfigurationError) as ctx:

            @entity("Gaps", EntityField("A", "a", is_key=True, ordinal=1), EntityField("C", "c", is_key=True, ordinal=3))
            class Gaps(Entity):
                pass

        self.assertEqual(ctx.exception.details["ordinals"], [1, 3])

    def test_explicit_ordinals(self):
        @entity(
            "Explicit",
            EntityField("B", "b", is_key=True, ordinal=2),
            EntityField("A", "a", is_key=True, ordinal=1),
        )
        class ExplicitOrdinals(Entity):
            pass

        self.assertEqual([k.name for k in get_entity_fields(ExplicitOrdinals, EntityFieldKind.KEYS)], ["A", "B"])


class TestKeySegments(unittest.TestCase):
    def test_format(self):
        value = uuid.UUID("0f8fad5b-d9cb-469f-a165-70867728950e")
        self.assertEqual(format_key_segment(value), "0f8fad5b-d9cb-469f-a165-70867728950e")
        self.assertEqual(format_key_segment(42), "42")
        self.assertEqual(format_key_segment(_Color.RED), "red")
        self.assertEqual(format_key_segment("abc"), "abc")
        with self.assertRaises(ValueError):
            format_key_segment(None)

    def test_parse(self):
        self.assertEqual(parse_key_segment(int, "42"), 42)
        self.assertEqual(parse_key_segment(uuid.UUID, "0f8fad5b-d9cb-469f-a165-70867728950e").version, 4)
        self.assertEqual(parse_key_segment(str, "SKU-1"), "SKU-1")
        with self.assertRaises(ValueError):
            parse_key_segment(int, "abc")

# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import unittest
import uuid

import pytest

from EntityStorage.Http.core._error_codes import (
    UNSUPPORTED_BLOB_COMPARISON,
    UNSUPPORTED_BLOB_LOGICAL_OPERATOR,
    UNSUPPORTED_BLOB_NESTED_FILTER,
    UNSUPPORTED_BLOB_NON_KEY_FILTER,
    UNSUPPORTED_BLOB_ORDINAL_GAP,
    VALIDATION_KEY_PATH,
)
from EntityStorage.Http.core.errors import ConfigurationError, UnsupportedOperationError, ValidationError
from EntityStorage.Http.data._blob import get_key_path, get_keys_from_key_path, get_prefix_segments
from EntityStorage.Http.models.connectors import BlobConnector, SerializationLanguage
from EntityStorage.Http.models.filters import ComparisonOperator, FilterPipeline, FilterPredicate
from EntityStorage.Http.models.query import BlobDataQuery, EnumerableQuery, RecordQuery

from fixtures.fake_http import build_client
from fixtures.storage_models import ProductDetail
from fixtures.test_data import BLOB_LIST_RESPONSE, CATEGORY_ID, blob_listing

CONTAINER = "https://acct.blob.core.windows.net/catalog"


def _eq(field, value):
    return FilterPredicate(field, ComparisonOperator.EQ, value)


class TestKeyPaths(unittest.TestCase):
    def test_key_path(self):
        product = ProductDetail(category_id=uuid.UUID(CATEGORY_ID), sku="SKU-1")
        self.assertEqual(get_key_path(product), ["Products", CATEGORY_ID, "SKU-1"])

    def test_key_path_requires_key_values(self):
        with self.assertRaises(ValidationError) as ctx:
            get_key_path(ProductDetail(sku="SKU-1"))
        self.assertEqual(ctx.exception.subcode, VALIDATION_KEY_PATH)

    def test_keys_from_key_path(self):
        keys = get_keys_from_key_path(ProductDetail, [CATEGORY_ID, "SKU-1"])
        self.assertEqual(keys, {"CategoryId": uuid.UUID(CATEGORY_ID), "Sku": "SKU-1"})

    def test_keys_from_partial_key_path(self):
        self.assertEqual(list(get_keys_from_key_path(ProductDetail, [CATEGORY_ID])), ["CategoryId"])

    def test_too_many_segments(self):
        with self.assertRaises(ValidationError):
            get_keys_from_key_path(ProductDetail, [CATEGORY_ID, "SKU-1", "extra"])

    def test_unparseable_segment(self):
        with self.assertRaises(ValidationError):
            get_keys_from_key_path(ProductDetail, ["not-a-guid"])


class TestPrefixSegments(unittest.TestCase):
    def test_no_filter(self):
        self.assertEqual(get_prefix_segments(ProductDetail, None), [])

    def test_full_key_in_any_order(self):
        flt = FilterPipeline.all(_eq("Sku", "SKU-1"), _eq("CategoryId", uuid.UUID(CATEGORY_ID)))
        self.assertEqual(get_prefix_segments(ProductDetail, flt), [CATEGORY_ID, "SKU-1"])

    def test_rejections(self):
        cases = [
            (FilterPipeline.all(_eq("CategoryId", CATEGORY_ID), FilterPipeline.all(_eq("Sku", "a"))), UNSUPPORTED_BLOB_NESTED_FILTER),
            (FilterPipeline.any(_eq("CategoryId", CATEGORY_ID), _eq("Sku", "a")), UNSUPPORTED_BLOB_LOGICAL_OPERATOR),
            (_eq("Name", "Widget"), UNSUPPORTED_BLOB_NON_KEY_FILTER),
            (FilterPredicate("CategoryId", ComparisonOperator.GT, CATEGORY_ID), UNSUPPORTED_BLOB_COMPARISON),
            (_eq("Sku", "SKU-1"), UNSUPPORTED_BLOB_ORDINAL_GAP),
        ]
        for flt, subcode in cases:
            with self.subTest(subcode=subcode):
                with self.assertRaises(UnsupportedOperationError) as ctx:
                    get_prefix_segments(ProductDetail, flt)
                self.assertEqual(ctx.exception.subcode, subcode)

    def test_unknown_field(self):
        with self.assertRaises(ValidationError):
            get_prefix_segments(ProductDetail, _eq("Colour", "red"))


class TestBlobHandler(unittest.TestCase):
    def setUp(self):
        self.client, self.http, self.ref = build_client(BlobConnector(CONTAINER))

    def test_list_references_by_prefix(self):
        self.http.queue(200, BLOB_LIST_RESPONSE)
        query = EnumerableQuery(ProductDetail, _eq("CategoryId", uuid.UUID(CATEGORY_ID)))
        references = self.client.query.blobs(self.ref, query)

        call = self.http.calls[0]
        self.assertEqual((call.method, call.url), ("get", CONTAINER))
        self.assertEqual(call.params, {"resType": "container", "comp": "list", "prefix": f"Products/{CATEGORY_ID}"})
        self.assertEqual(call.headers["x-ms-version"], "2017-11-09")
        self.assertEqual([r.keys["Sku"] for r in references], ["SKU-1", "SKU-2"])
        self.assertEqual(references[0].keys["CategoryId"], uuid.UUID(CATEGORY_ID))

    def test_list_without_filter_uses_entity_folder(self):
        self.http.queue(200, "<EnumerationResults><Blobs /></EnumerationResults>")
        self.assertEqual(self.client.query.blobs(self.ref, EnumerableQuery(ProductDetail)), [])
        self.assertEqual(self.http.calls[0].params["prefix"], "Products/")

    def test_reference_fetches_blob_body(self):
        self.http.queue(200, BLOB_LIST_RESPONSE)
        self.http.queue(200, {"CategoryId": CATEGORY_ID, "Sku": "SKU-1", "Name": "Widget", "Price": 9.5})
        references = self.client.query.blobs(self.ref, EnumerableQuery(ProductDetail))

        product = references[0].get()
        self.assertEqual(self.http.calls[1].url, f"{CONTAINER}/Products/{CATEGORY_ID}/SKU-1")
        self.assertEqual(product.name, "Widget")
        self.assertEqual(product.price, 9.5)
        self.assertTrue(product.is_retrieved_from_storage)

    def test_list_drops_longer_key_values_sharing_the_prefix(self):
        self.http.queue(200, blob_listing(f"Products/{CATEGORY_ID}/SKU-1", f"Products/{CATEGORY_ID}/SKU-10"))
        flt = FilterPipeline.all(_eq("CategoryId", uuid.UUID(CATEGORY_ID)), _eq("Sku", "SKU-1"))
        references = self.client.query.blobs(self.ref, EnumerableQuery(ProductDetail, flt))

        self.assertEqual(self.http.calls[0].params["prefix"], f"Products/{CATEGORY_ID}/SKU-1")
        self.assertEqual([r.keys["Sku"] for r in references], ["SKU-1"])

    def test_list_follows_next_marker(self):
        self.http.queue(200, blob_listing(f"Products/{CATEGORY_ID}/SKU-1", next_marker="page-2"))
        self.http.queue(200, blob_listing(f"Products/{CATEGORY_ID}/SKU-2"))
        references = self.client.query.blobs(self.ref, EnumerableQuery(ProductDetail))

        self.assertEqual([r.keys["Sku"] for r in references], ["SKU-1", "SKU-2"])
        self.assertNotIn("marker", self.http.calls[0].params)
        self.assertEqual(self.http.calls[1].params["marker"], "page-2")
        self.assertEqual(self.http.calls[1].params["prefix"], "Products/")

    def test_blob_data_empty_body(self):
        self.http.queue(200)
        self.assertIsNone(self.client.query.blob_data(self.ref, BlobDataQuery(ProductDetail, "Products/x/y")))

    def test_save_puts_key_path(self):
        self.http.queue(201)
        product = ProductDetail(category_id=uuid.UUID(CATEGORY_ID), sku="SKU-1", name="Widget", price=9.5)
        result = self.client.records.save(self.ref, product)

        call = self.http.calls[0]
        self.assertEqual((call.method, call.url), ("put", f"{CONTAINER}/Products/{CATEGORY_ID}/SKU-1"))
        self.assertEqual(call.headers["x-ms-blob-type"], "BlockBlob")
        self.assertEqual(call.body, {"CategoryId": CATEGORY_ID, "Sku": "SKU-1", "Name": "Widget", "Price": 9.5})
        self.assertTrue(result.entity.is_retrieved_from_storage)


def test_blob_record_query_is_unsupported():
    client, http, ref = build_client(BlobConnector(CONTAINER))
    with pytest.raises(ConfigurationError):
        client.records.get(ref, RecordQuery(ProductDetail))
    assert http.calls == []


def test_key_path_round_trip():
    product = ProductDetail(category_id=uuid.UUID(CATEGORY_ID), sku="SKU-9")
    path = get_key_path(product)
    keys = get_keys_from_key_path(ProductDetail, path[1:])
    assert keys == {"CategoryId": product.category_id, "Sku": "SKU-9"}


def test_xml_connector_saves_json_bodies_that_read_back():
    client, http, ref = build_client(BlobConnector(CONTAINER, serialization_language=SerializationLanguage.XML))
    http.queue(201)
    product = ProductDetail(category_id=uuid.UUID(CATEGORY_ID), sku="SKU-1", name="Widget", price=9.5)
    client.records.save(ref, product)
    saved = http.calls[0].data

    http.queue(200, saved)
    loaded = client.query.blob_data(ref, BlobDataQuery(ProductDetail, f"Products/{CATEGORY_ID}/SKU-1"))
    assert http.calls[0].body["Name"] == "Widget"
    assert loaded == product

# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

# HTTP subcode constants
HTTP_400 = "http_400"
HTTP_401 = "http_401"
HTTP_403 = "http_403"
HTTP_404 = "http_404"
HTTP_409 = "http_409"
HTTP_412 = "http_412"
HTTP_415 = "http_415"
HTTP_429 = "http_429"
HTTP_500 = "http_500"
HTTP_502 = "http_502"
HTTP_503 = "http_503"
HTTP_504 = "http_504"

ALL_HTTP_SUBCODES = {
    HTTP_400,
    HTTP_401,
    HTTP_403,
    HTTP_404,
    HTTP_409,
    HTTP_412,
    HTTP_415,
    HTTP_429,
    HTTP_500,
    HTTP_502,
    HTTP_503,
    HTTP_504,
}

TRANSIENT_STATUS = {429, 502, 503, 504}


def _http_subcode(status: int) -> str:
    return f"http_{status}"


def _is_transient_status(status: int) -> bool:
    return status in TRANSIENT_STATUS


# Configuration subcodes
CONFIG_CONNECTOR_MISSING = "config_connector_missing"
CONFIG_CONNECTOR_AMBIGUOUS = "config_connector_ambiguous"
CONFIG_CONNECTOR_KIND = "config_connector_kind"
CONFIG_ENTITY_NOT_REGISTERED = "config_entity_not_registered"
CONFIG_ENTITY_INVALID = "config_entity_invalid"
CONFIG_RELATION_NO_KEYS = "config_relation_no_keys"
CONFIG_HANDLER_MISSING = "config_handler_missing"

# Unsupported operation subcodes
UNSUPPORTED_NEXT_LINK = "unsupported_next_link"
UNSUPPORTED_BLOB_NESTED_FILTER = "unsupported_blob_nested_filter"
UNSUPPORTED_BLOB_LOGICAL_OPERATOR = "unsupported_blob_logical_operator"
UNSUPPORTED_BLOB_NON_KEY_FILTER = "unsupported_blob_non_key_filter"
UNSUPPORTED_BLOB_ORDINAL_GAP = "unsupported_blob_ordinal_gap"
UNSUPPORTED_BLOB_COMPARISON = "unsupported_blob_comparison"
UNSUPPORTED_QUEUE_PARTITION = "unsupported_queue_partition"
UNSUPPORTED_QUEUE_RESUBMIT = "unsupported_queue_resubmit"
UNSUPPORTED_ACTION_PARTITION = "unsupported_action_partition"
UNSUPPORTED_ACTION_RELATIONS = "unsupported_action_relations"
UNSUPPORTED_RELATION_UNSAVED_PARENT = "unsupported_relation_unsaved_parent"

# Protocol subcodes
PROTOCOL_RECORD_MULTIPLE = "protocol_record_multiple"
PROTOCOL_MALFORMED_ENVELOPE = "protocol_malformed_envelope"
PROTOCOL_MALFORMED_PAYLOAD = "protocol_malformed_payload"
PROTOCOL_QUEUE_MESSAGE_COUNT = "protocol_queue_message_count"

# Validation subcodes
VALIDATION_RELATION_REFERENCE_MISSING = "validation_relation_reference_missing"
VALIDATION_QUERY_PARAMETERS = "validation_query_parameters"
VALIDATION_KEY_PATH = "validation_key_path"

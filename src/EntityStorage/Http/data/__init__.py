# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Protocol handlers, serializer and envelope codecs. Internal; use :class:`~EntityStorage.Http.client.StorageClient`."""

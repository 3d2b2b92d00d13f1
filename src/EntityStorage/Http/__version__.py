# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Version information for the EntityStorage-Http package."""

__version__ = "0.1.0"

# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Action command operations namespace."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.registry import ServiceReference
from ..models.query import ActionCommand, ActionResult, OperationKind

if TYPE_CHECKING:
    from ..client import StorageClient


class ActionOperations:
    """
    Service action commands.

    Accessed via ``client.actions``.

    Example::

        result = client.actions.execute(
            api,
            ActionCommand(GenerateInvoice(order_id=order_id), ActionCommandType.CREATE, GeneratedInvoice),
        )
        invoice = result.result
    """

    def __init__(self, client: "StorageClient") -> None:
        self._client = client

    def execute(self, service_ref: ServiceReference, command: ActionCommand) -> ActionResult:
        """
        Execute an action command.

        :return: Result holding the deserialized response when a response type is declared
            and the service returned a body.
        :rtype: ~EntityStorage.Http.models.query.ActionResult

        :raises ~EntityStorage.Http.core.errors.UnsupportedOperationError: If the parameters
            carry a partition value or relations.
        """
        if not isinstance(command, ActionCommand):
            raise TypeError("command must be an ActionCommand")
        with self._client._scoped("actions.execute"):
            return self._client._dispatch(service_ref, OperationKind.ACTION, command)

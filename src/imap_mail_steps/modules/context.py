"""Step definitions, per-item execution context and binary data helpers."""

import base64
from dataclasses import dataclass, field
from typing import Any, Callable

_MISSING = object()


@dataclass
class Parameter:
    """Declared input of a step."""

    name: str
    display_name: str
    type: str = "string"
    default: Any = None
    required: bool = False
    description: str = ""
    hint: str = ""


@dataclass
class ResourceOperation:
    """A mailbox step: its parameters and the function that executes it.

    ``execute(context, item_index, client)`` returns a list of output items.
    """

    name: str
    value: str
    parameters: list[Parameter]
    execute: Callable
    description: str = ""

    def parameter(self, name):
        for param in self.parameters:
            if param.name == name:
                return param
        return None


@dataclass
class BinaryData:
    """File payload attached to an output item."""

    data: str
    file_name: str
    mime_type: str
    file_size: int

    def content(self):
        return base64.b64decode(self.data)

    def to_dict(self):
        return {
            "data": self.data,
            "fileName": self.file_name,
            "mimeType": self.mime_type,
            "fileSize": self.file_size,
        }


def prepare_binary_data(content, file_name, mime_type=None):
    """Wrap raw bytes as :class:`BinaryData` (base64-encoded)."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    content = content or b""
    return BinaryData(
        data=base64.b64encode(content).decode("ascii"),
        file_name=file_name,
        mime_type=mime_type or "application/octet-stream",
        file_size=len(content),
    )


def output_item(json_data, binary=None, item_index=None):
    """Build one output item ``{"json": ..., "binary": ..., "pairedItem": ...}``."""
    item = {"json": json_data}
    if binary:
        item["binary"] = binary
    if item_index is not None:
        item["pairedItem"] = {"item": item_index}
    return item


@dataclass
class ExecutionContext:
    """Input items for one step run; each item is a dict of parameter values."""

    operation: ResourceOperation
    items: list[dict] = field(default_factory=lambda: [{}])
    node_name: str = "IMAP"
    continue_on_fail: bool = False

    def get_parameter(self, name, item_index, default=_MISSING):
        """Return parameter *name* for item *item_index*.

        Lookup order: the item's own value, then *default*, then the
        parameter's declared default.

        Raises
        ------
        ValueError
            If *name* is not a declared parameter, or a required parameter
            has no value.
        """
        param = self.operation.parameter(name)
        if param is None:
            raise ValueError(f"Unknown parameter '{name}' for operation '{self.operation.value}'")

        item = self.items[item_index]
        if name in item and item[name] is not None:
            return item[name]
        if default is not _MISSING:
            return default
        if param.required and param.default in (None, ""):
            raise ValueError(f"Missing required parameter '{name}' for item {item_index}")
        return param.default

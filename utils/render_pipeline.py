"""
Render-Call Pipeline

An ordered list of named, deferred rendering directives. Add-on operations
append calls or insert them next to an existing call by name; the caller can
omit calls by name when rendering. Execution always starts from a fixed
bootstrap that creates a fresh backend object from the table model, so
rendering the same table twice gives identical output.

Omit policy: names that are not in the pipeline are ignored (logged at debug).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Protocol

import pandas as pd

from logger import get_logger
from utils.errors import UnknownAnchorError

logger = get_logger(__name__)

BOOTSTRAP_NAME = "init_table"

TARGETS = frozenset(
    {"cols_label", "cols_hide", "text_style", "footnote", "spanner", "caption", "indent", "sub_missing"}
)


@dataclass(frozen=True)
class RenderCall:
    """
    A named rendering directive.

    Attributes:
        name: Stable identifier used for anchoring and omission.
        target: Backend primitive the call drives (one of TARGETS).
        params: Primitive arguments; stored read-only.
    """

    name: str
    target: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.target not in TARGETS:
            raise ValueError(f"Unknown render target '{self.target}'; expected one of {sorted(TARGETS)}")
        if not self.name or self.name == BOOTSTRAP_NAME:
            raise ValueError(f"Invalid render call name {self.name!r}")
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


class RenderCallPipeline:
    """
    Ordered sequence of RenderCalls; never reordered implicitly.

    Adding a call whose name already exists replaces that call in place,
    keeping its position.
    """

    def __init__(self, calls: Iterable[RenderCall] = ()):
        self._calls: list[RenderCall] = []
        for call in calls:
            self.append(call)

    def __iter__(self):
        return iter(self._calls)

    def __len__(self) -> int:
        return len(self._calls)

    def __contains__(self, name: object) -> bool:
        return any(call.name == name for call in self._calls)

    def __repr__(self) -> str:
        return f"RenderCallPipeline({self.names})"

    @property
    def names(self) -> list[str]:
        return [call.name for call in self._calls]

    def copy(self) -> "RenderCallPipeline":
        # RenderCall is immutable, so a shallow list copy is independent
        clone = RenderCallPipeline()
        clone._calls = list(self._calls)
        return clone

    def _index(self, name: str) -> int | None:
        for i, call in enumerate(self._calls):
            if call.name == name:
                return i
        return None

    def _anchor_index(self, anchor: str) -> int:
        idx = self._index(anchor)
        if idx is None:
            raise UnknownAnchorError(f"Render call '{anchor}' not found; pipeline has {self.names}")
        return idx

    def append(self, call: RenderCall) -> "RenderCallPipeline":
        existing = self._index(call.name)
        if existing is not None:
            self._calls[existing] = call
        else:
            self._calls.append(call)
        return self

    def insert_after(self, anchor: str, call: RenderCall) -> "RenderCallPipeline":
        """
        Insert immediately after the call named `anchor`.

        Raises:
            UnknownAnchorError: If no call is named `anchor`.
        """
        return self._insert(anchor, call, offset=1)

    def insert_before(self, anchor: str, call: RenderCall) -> "RenderCallPipeline":
        """
        Insert immediately before the call named `anchor`.

        Raises:
            UnknownAnchorError: If no call is named `anchor`.
        """
        return self._insert(anchor, call, offset=0)

    def _insert(self, anchor: str, call: RenderCall, offset: int) -> "RenderCallPipeline":
        self._anchor_index(anchor)
        if call.name == anchor:
            raise UnknownAnchorError(f"Render call '{call.name}' cannot be anchored on itself")
        existing = self._index(call.name)
        if existing is not None:
            del self._calls[existing]
        self._calls.insert(self._anchor_index(anchor) + offset, call)
        return self

    def filtered(self, omit: Iterable[str] = ()) -> list[RenderCall]:
        """Calls left after dropping every name in `omit`, in stored order."""
        omit_set = set(omit)
        unknown = omit_set.difference(self.names)
        if unknown:
            logger.debug(f"Ignoring omitted render calls not in pipeline: {sorted(unknown)}")
        return [call for call in self._calls if call.name not in omit_set]


class RenderBackend(Protocol):
    """Operations a rendering backend exposes to the pipeline."""

    def set_column_labels(self, labels: Mapping[str, str]) -> None: ...
    def hide_columns(self, columns: Iterable[str]) -> None: ...
    def style_text(self, rows: Mapping[str, Any], columns: Iterable[str], style: str) -> None: ...
    def add_footnote(self, text: str, columns: Iterable[str] = ()) -> None: ...
    def add_spanner(self, label: str, columns: Iterable[str]) -> None: ...
    def set_caption(self, text: str) -> None: ...
    def indent_rows(self, rows: Mapping[str, Any], column: str) -> None: ...
    def substitute_missing(self, text: str) -> None: ...


BackendFactory = Callable[[pd.DataFrame, list[str]], RenderBackend]


def _dispatch(backend: RenderBackend, call: RenderCall) -> None:
    params = call.params
    match call.target:
        case "cols_label":
            backend.set_column_labels(params["labels"])
        case "cols_hide":
            backend.hide_columns(params["columns"])
        case "text_style":
            backend.style_text(params.get("rows", {}), params["columns"], params["style"])
        case "footnote":
            backend.add_footnote(params["text"], params.get("columns", ()))
        case "spanner":
            backend.add_spanner(params["label"], params["columns"])
        case "caption":
            backend.set_caption(params["text"])
        case "indent":
            backend.indent_rows(params.get("rows", {}), params.get("column", "label"))
        case "sub_missing":
            backend.substitute_missing(params["text"])


def execute(
    pipeline: RenderCallPipeline,
    body: pd.DataFrame,
    columns: list[str],
    backend_factory: BackendFactory,
    omit: Iterable[str] = (),
) -> RenderBackend:
    """
    Bootstrap a backend from the table body and run the remaining calls in order.

    Parameters:
        pipeline: Stored render calls.
        body: Table body snapshot; the backend receives a copy.
        columns: Ordered column keys to present.
        backend_factory: Callable building the backend (the bootstrap call).
        omit: Render call names to skip.
    """
    omit = list(omit)
    if BOOTSTRAP_NAME in omit:
        logger.warning(f"'{BOOTSTRAP_NAME}' cannot be omitted; ignoring")
    backend = backend_factory(body.copy(deep=True), list(columns))
    for call in pipeline.filtered(omit):
        _dispatch(backend, call)
    return backend

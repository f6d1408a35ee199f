"""Closed registry of backend operations and their request/response shapes.

Every call a backend transport makes goes through this registry, so an
operation name always maps to one validated request model and one response
type.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import BackendError, UnknownOperationError


# One octet of a binary resource
Byte = Annotated[int, Field(ge=0, le=255)]


class SearchRequest(BaseModel):
    """Term lookup within one dictionary."""

    id: int
    kw: str
    strict: bool = False
    prefix_limit: int = Field(default=5, ge=0)
    phrase_limit: int = Field(default=10, ge=0)


class WordRequest(BaseModel):
    """Definition lookup for one term."""

    id: int
    name: str


class StaticFilesRequest(BaseModel):
    """Dictionary-wide CSS and JS assets."""

    id: int


class ResourceRequest(BaseModel):
    """Binary resource (image, audio) referenced from a definition."""

    id: int
    name: str


@dataclass(frozen=True)
class Operation:
    """One registered operation."""
    name: str
    request_model: Type[BaseModel]
    response_adapter: TypeAdapter


OPERATIONS: Mapping[str, Operation] = {
    "search": Operation("search", SearchRequest, TypeAdapter(List[str])),
    "search_word": Operation("search_word", WordRequest, TypeAdapter(Optional[str])),
    "get_static_files": Operation(
        "get_static_files", StaticFilesRequest, TypeAdapter(Optional[Tuple[str, str]])
    ),
    "search_resource": Operation(
        "search_resource", ResourceRequest, TypeAdapter(Optional[List[Byte]])
    ),
}


def get_operation(operation: str, /) -> Operation:
    """Look up an operation by name.

    Raises:
        UnknownOperationError: If the name is not registered
    """
    try:
        return OPERATIONS[operation]
    except KeyError:
        raise UnknownOperationError(
            f"Unknown operation '{operation}'. "
            f"Available operations: {sorted(OPERATIONS)}"
        ) from None


def build_request(operation: str, /, **params: Any) -> Dict[str, Any]:
    """Validate parameters for an operation and return the JSON payload.

    Raises:
        UnknownOperationError: If the name is not registered
        BackendError: If the parameters do not fit the request model
    """
    entry = get_operation(operation)
    try:
        return entry.request_model(**params).model_dump()
    except ValidationError as exc:
        raise BackendError(f"Invalid request for '{operation}': {exc}") from exc


def parse_response(operation: str, /, data: Any) -> Any:
    """Validate a decoded response for an operation.

    Raises:
        UnknownOperationError: If the name is not registered
        BackendError: If the response does not fit the response type
    """
    entry = get_operation(operation)
    try:
        return entry.response_adapter.validate_python(data)
    except ValidationError as exc:
        raise BackendError(f"Invalid response for '{operation}': {exc}") from exc

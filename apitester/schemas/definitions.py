"""Pydantic schemas for parsed test-case definitions."""

from enum import Enum
from types import MappingProxyType
from typing import Annotated, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

# Typed constant compared against a JSON value.
LiteralValue = Union[bool, int, float, str]


class Method(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def sends_payload(self) -> bool:
        return self in (Method.POST, Method.PUT, Method.PATCH)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class JSONPathExists(_Frozen):
    """Passes when the path resolves to at least one node."""
    kind: Literal["JSONPathExists"] = "JSONPathExists"
    path: str = Field(..., description="JSON path, e.g. $.data.items")

    def __str__(self) -> str:
        return f"JSONPathExists: {self.path}"


class JSONPathValue(_Frozen):
    """Passes when the path resolves to one node equal to ``expected``."""
    kind: Literal["JSONPathValue"] = "JSONPathValue"
    path: str = Field(..., description="JSON path, e.g. $.data.items[0].id")
    expected: LiteralValue

    def __str__(self) -> str:
        return f"JSONPathValue: {self.path} == {self.expected!r}"


class HeaderExists(_Frozen):
    """Passes when a header with this name (case-insensitive) is present."""
    kind: Literal["HeaderExists"] = "HeaderExists"
    name: str

    def __str__(self) -> str:
        return f"HeaderExists: {self.name}"


class HeaderValue(_Frozen):
    """Passes when the header exists and its value matches exactly."""
    kind: Literal["HeaderValue"] = "HeaderValue"
    name: str
    expected: str

    def __str__(self) -> str:
        return f"HeaderValue: {self.name} == {self.expected}"


Assertion = Annotated[
    Union[JSONPathExists, JSONPathValue, HeaderExists, HeaderValue],
    Field(discriminator="kind"),
]


class TestCase(_Frozen):
    """One declarative request plus the checks its response must satisfy."""
    __test__ = False  # not a pytest class

    name: str
    description: str | None = None
    author: str | None = None
    method: Method
    url: str
    expected_status_code: int = Field(..., ge=100, le=599)
    headers: Mapping[str, str] = Field(default_factory=dict, validate_default=True)
    payload: Mapping[str, str] = Field(default_factory=dict, validate_default=True)
    assertions: tuple[Assertion, ...] = ()
    line: int = Field(1, ge=1, description="Line where the record starts")

    @field_validator("headers", "payload")
    @classmethod
    def freeze_mapping(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(v))

    @field_serializer("headers", "payload")
    def dump_mapping(self, v: Mapping[str, str]) -> dict[str, str]:
        return dict(v)

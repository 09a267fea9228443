"""
PL/0 Type Representations
=========================

Types recorded by the parser for type and variable declarations. The
front end does no type checking; these records only carry what was
declared so that a later pass can resolve and check it.

Type Representation
-------------------
- ScalarType: the predefined `integer` and `boolean` types
- SubrangeType: `[lower .. upper]` over unevaluated constant expressions
- TypeReference: a type named by identifier, resolved from `scope`
- ReferenceType: the type of a variable, wrapping its declared type
- ErrorType: placeholder when a type failed to parse (ERROR_TYPE)
"""

from dataclasses import dataclass
from typing import Union

from pl0_sdk.errors import SourceLocation
from pl0_sdk.pl0.ast import ConstExpression


@dataclass(frozen=True)
class ScalarType:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class SubrangeType:
    lower: ConstExpression
    upper: ConstExpression

    def __str__(self) -> str:
        return f"[{self.lower}..{self.upper}]"


@dataclass(frozen=True)
class TypeReference:
    """Type given by name; `scope` is where the name appeared."""
    name: str
    scope: int
    location: SourceLocation

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ReferenceType:
    """Type of a variable: a reference to a location holding `base`."""
    base: "Type"

    def __str__(self) -> str:
        return f"ref({self.base})"


@dataclass(frozen=True)
class ErrorType:
    def __str__(self) -> str:
        return "<error>"


Type = Union[ScalarType, SubrangeType, TypeReference, ReferenceType, ErrorType]


# Predefined types
INTEGER_TYPE = ScalarType("integer")
BOOLEAN_TYPE = ScalarType("boolean")
ERROR_TYPE = ErrorType()

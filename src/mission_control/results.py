"""
Tagged result type shared by the repository, the image client and the
import pipeline.

Callers branch on ``result.error`` instead of catching exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# PostgREST code for "zero rows where exactly one was expected"
NOT_FOUND_CODE = "PGRST116"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    STORE = "store"
    CONFIGURATION = "configuration"
    INFERENCE_RESPONSE = "inference_response"
    UNAUTHORIZED_CREDENTIAL = "unauthorized_credential"
    INFERENCE = "inference"


@dataclass(frozen=True)
class OperationError:
    kind: ErrorKind
    message: str
    code: Optional[str] = None

    @property
    def is_not_found(self) -> bool:
        return self.kind is ErrorKind.STORE and self.code == NOT_FOUND_CODE

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "code": self.code}


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    data: Optional[T] = None
    error: Optional[OperationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Optional[T] = None) -> "OperationResult[T]":
        return cls(data=data, error=None)

    @classmethod
    def failure(
        cls, kind: ErrorKind, message: str, code: Optional[str] = None
    ) -> "OperationResult[T]":
        return cls(data=None, error=OperationError(kind=kind, message=message, code=code))

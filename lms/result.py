"""Tagged result returned by engine operations that can fail."""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from lms.errors import LoanError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    ok = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: LoanError

    ok = False

    @property
    def kind(self) -> str:
        return self.error.kind

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err]

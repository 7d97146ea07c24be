"""
Exceptions raised by the service layer.

Only validation and not-found conditions are raised. Business-rule
failures (insufficient funds, wrong status, ...) are returned as
ServiceResult values, see src.core.results.
"""

from dataclasses import dataclass
from typing import Any, List


@dataclass(frozen=True)
class FieldError:
    """Single field-level validation problem"""

    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class InvalidInputError(Exception):
    """Input rejected before any state mutation"""

    def __init__(self, errors: List[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in self.errors))

    @classmethod
    def single(cls, field: str, message: str) -> "InvalidInputError":
        return cls([FieldError(field, message)])


class NotFoundError(Exception):
    """Unknown order / inquiry / rate / user id"""

    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")

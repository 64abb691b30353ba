from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Tuple, TypeVar

T = TypeVar("T")


class Unset:
    """Marker type for a patch field that was not touched."""

    _instance: "Unset | None" = None

    def __new__(cls) -> "Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = Unset()


@dataclass(frozen=True)
class Patch:
    """Field-level change set for one entity.

    Subclasses declare only the fields that may change after creation, each
    defaulting to UNSET. Key fields are never patchable.
    """

    def changed_fields(self) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(self) if getattr(self, f.name) is not UNSET)

    def changes(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.changed_fields()}

    def __bool__(self) -> bool:
        return bool(self.changed_fields())

    def check(self, entity: Any) -> None:
        """Reject illegal transitions against the current entity. Default: allow all."""

    def apply(self, entity: T) -> T:
        self.check(entity)
        return replace(entity, **self.changes())  # type: ignore[type-var]

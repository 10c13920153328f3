"""
Command catalogue.

Each administrative command under test is a CommandDescriptor record. The
orchestrator consumes the catalogue generically; everything that differs
between commands is expressed by the descriptor's flags and its setup and
confirm procedures.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterator

from wc_harness.core.exceptions import AssertionMismatch, CatalogError
from wc_harness.core.logging import get_logger

if TYPE_CHECKING:
    from pymongo.collection import Collection
    from pymongo.database import Database

    from wc_harness.cluster.connection import ClusterConnections

logger = get_logger("conformance.catalog")


class Partition(str, Enum):
    """How the router treats the write concern of a command."""

    STRICT = "strict"  # Non-majority write concerns must be rejected
    UPCONVERTED = "upconverted"  # Router replaces any write concern with majority


@dataclass
class CaseContext:
    """Per-case state handed to setup and confirm procedures."""

    cluster: "ClusterConnections"
    db_name: str
    collection_name: str

    @property
    def db(self) -> "Database":
        return self.cluster.database(self.db_name)

    @property
    def collection(self) -> "Collection":
        return self.db[self.collection_name]

    def authenticates(self, user: str, password: str) -> bool:
        return self.cluster.authenticates(self.db_name, user, password)

    def expect(self, condition: bool, message: str, **details: Any) -> None:
        """Raise AssertionMismatch unless condition holds."""
        if not condition:
            raise AssertionMismatch(
                message, details={"database": self.db_name, **details}
            )


Procedure = Callable[[CaseContext], None]


def _noop(ctx: CaseContext) -> None:
    return None


@dataclass
class CommandDescriptor:
    """One administrative command and its declared write-concern behaviour."""

    name: str
    request: dict[str, Any]
    setup: Procedure = _noop
    confirm: Procedure = _noop
    requires_majority: bool = False
    runs_on_shards: bool = False
    fails_on_shards: bool = False  # Only meaningful when runs_on_shards
    admin: bool = False
    partition: Partition = Partition.STRICT
    description: str = ""

    @property
    def command_name(self) -> str:
        return next(iter(self.request))

    def build_request(self, write_concern: dict[str, Any]) -> dict[str, Any]:
        """Copy the request template with a write concern attached."""
        request = deepcopy(self.request)
        request["writeConcern"] = dict(write_concern)
        return request


@dataclass
class CommandCatalog:
    """Ordered registry of command descriptors."""

    _entries: list[CommandDescriptor] = field(default_factory=list)

    def register(self, descriptor: CommandDescriptor) -> CommandDescriptor:
        """Validate and add a descriptor, returning the stored record."""
        if not descriptor.name:
            raise CatalogError("Descriptor needs a name")
        if not descriptor.request:
            raise CatalogError(
                f"Descriptor {descriptor.name!r} has an empty request",
                details={"name": descriptor.name},
            )
        if "writeConcern" in descriptor.request:
            raise CatalogError(
                f"Descriptor {descriptor.name!r} must not carry its own writeConcern",
                details={"name": descriptor.name},
            )
        if any(entry.name == descriptor.name for entry in self._entries):
            raise CatalogError(
                f"Duplicate descriptor name {descriptor.name!r}",
                details={"name": descriptor.name},
            )

        if descriptor.fails_on_shards and not descriptor.runs_on_shards:
            logger.debug(
                "Ignoring fails_on_shards for %s: command does not run on shards",
                descriptor.name,
            )
            descriptor.fails_on_shards = False

        if descriptor.partition == Partition.UPCONVERTED and descriptor.requires_majority:
            raise CatalogError(
                f"Descriptor {descriptor.name!r} cannot both require majority and be "
                "upconverted by the router",
                details={"name": descriptor.name},
            )

        self._entries.append(descriptor)
        return descriptor

    def add(self, name: str, request: dict[str, Any], **kwargs: Any) -> CommandDescriptor:
        """Build and register a descriptor in one call."""
        return self.register(CommandDescriptor(name=name, request=request, **kwargs))

    def strict(self) -> list[CommandDescriptor]:
        return [e for e in self._entries if e.partition == Partition.STRICT]

    def upconverted(self) -> list[CommandDescriptor]:
        return [e for e in self._entries if e.partition == Partition.UPCONVERTED]

    def get(self, name: str) -> CommandDescriptor:
        for entry in self._entries:
            if entry.name == name:
                return entry
        raise CatalogError(f"Unknown command {name!r}", details={"name": name})

    def select(self, names: list[str]) -> "CommandCatalog":
        """Sub-catalogue with only the named descriptors, in catalogue order."""
        wanted = set(names)
        missing = wanted - {e.name for e in self._entries}
        if missing:
            raise CatalogError(
                f"Unknown commands: {sorted(missing)}", details={"names": sorted(missing)}
            )
        return CommandCatalog([e for e in self._entries if e.name in wanted])

    @property
    def names(self) -> list[str]:
        return [e.name for e in self._entries]

    def __iter__(self) -> Iterator[CommandDescriptor]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

"""Schema Resolver: turn type references into component schemas.

Resolution is driven by a worklist seeded with every type reachable from
the operations. Each popped name is resolved at most once; field types are
*enqueued* rather than resolved recursively, so a type that refers to
itself, directly or through other types, simply becomes a ``$ref`` to its
own component.

The only recursive step is embedding: an embedded struct's properties are
spliced into the owner, which requires the embedded type's flattened
property list right away. Types whose flattening is in progress are marked
in-flight, and an embedding edge that closes a cycle in the embedding graph
is emitted as an ``allOf`` reference on both sides. The cycle check is
structural, so the resulting components do not depend on which type was
resolved first.

A name missing from the :class:`~swagdoc.schema.typetable.TypeTable` is
fatal: :class:`~swagdoc.exceptions.ResolutionError` reports the operation,
the field path and the missing name.

Example::

    resolver = SchemaResolver(table)
    resolver.seed(operations)
    components = resolver.resolve()
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional

from swagdoc.exceptions import ResolutionError
from swagdoc.models import (
    FieldDef,
    OperationFragment,
    SchemaNode,
    SourceLocation,
    StructDef,
    TypeRef,
)
from swagdoc.schema.gotypes import inline_schema, is_primitive
from swagdoc.schema.typetable import TypeTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Origin:
    """Where a pending reference came from, for error reporting.

    Attributes:
        operation: Operation label, e.g. ``GET /users/{id}``.
        location: Source location of the directive that started the chain.
        path: Hops from the directive to the reference, e.g.
            ``("response 200", "model.User.Address")``.
    """

    operation: str
    location: Optional[SourceLocation] = None
    path: tuple[str, ...] = ()

    def via(self, hop: str) -> Origin:
        return Origin(self.operation, self.location, self.path + (hop,))


@dataclass
class _Flattened:
    properties: dict[str, SchemaNode]
    required: list[str]
    bases: list[SchemaNode]


class SchemaResolver:
    """Worklist resolver producing one :class:`SchemaNode` per type name.

    Args:
        table: The frozen type table. Never modified.
    """

    def __init__(self, table: TypeTable) -> None:
        self._table = table
        self._components: dict[str, SchemaNode] = {}
        self._worklist: deque[tuple[str, Origin]] = deque()
        self._in_flight: set[str] = set()
        self._flattened: dict[str, _Flattened] = {}

    # --- seeding ---

    def enqueue(self, ref: TypeRef, origin: Origin) -> None:
        """Queue every named type inside *ref* for resolution."""
        for named in ref.named_refs():
            if not is_primitive(named.name):
                self._worklist.append((named.name, origin))

    def seed(self, operations: Iterable[OperationFragment]) -> None:
        """Queue every type referenced by parameters, bodies, responses and headers."""
        for op in operations:
            origin = Origin(op.label, op.location)
            for param in op.parameters:
                self.enqueue(param.type, Origin(op.label, param.source or op.location, (f"param {param.name}",)))
            for code, responses in op.responses.items():
                for response in responses:
                    response_origin = Origin(op.label, response.source or op.location, (f"response {code}",))
                    if response.type is not None:
                        self.enqueue(response.type, response_origin)
                    for header in response.headers.values():
                        self.enqueue(header.type, response_origin.via(f"header {header.name}"))
            logger.debug("seeded %s from %s", op.label, origin.location)

    # --- resolution ---

    def resolve(self) -> dict[str, SchemaNode]:
        """Drain the worklist.

        Returns:
            The components map, sorted by name.

        Raises:
            ResolutionError: When a queued name has no declaration.
        """
        while self._worklist:
            name, origin = self._worklist.popleft()
            if name in self._components:
                continue
            self._components[name] = self._resolve_named(name, origin)
        logger.debug("resolved %d component schemas", len(self._components))
        return {name: self._components[name] for name in sorted(self._components)}

    @property
    def components(self) -> dict[str, SchemaNode]:
        return {name: self._components[name] for name in sorted(self._components)}

    def schema_for(self, ref: TypeRef, origin: Origin) -> SchemaNode:
        """Use-site schema for *ref*; named types are queued as a side effect."""
        return inline_schema(ref, lambda name: self._worklist.append((name, origin)))

    def _lookup(self, name: str, origin: Origin) -> StructDef:
        struct = self._table.lookup(name)
        if struct is None:
            raise ResolutionError(name, origin.operation, origin.path, origin.location)
        return struct

    def _resolve_named(self, name: str, origin: Origin) -> SchemaNode:
        struct = self._lookup(name, origin)
        self._in_flight.add(name)
        try:
            if struct.underlying is not None:
                node = self.schema_for(struct.underlying, origin.via(name))
            else:
                flat = self._flatten(struct, origin)
                node = SchemaNode(type="object", properties=flat.properties, required=flat.required)
                if flat.bases:
                    node = SchemaNode(all_of=[*flat.bases, node])
        finally:
            self._in_flight.discard(name)
        if struct.description:
            node = node.model_copy(update={"description": struct.description})
        return node

    def _flatten(self, struct: StructDef, origin: Origin) -> _Flattened:
        cached = self._flattened.get(struct.name)
        if cached is not None:
            return cached

        own_names = {f.property_name for f in struct.fields if not f.embedded}
        properties: dict[str, SchemaNode] = {}
        required: list[str] = []
        bases: list[SchemaNode] = []

        for field in struct.fields:
            hop = origin.via(f"{struct.name}.{field.name}")
            if not field.embedded:
                properties[field.property_name] = self._property_schema(field, hop)
                if field.required and field.property_name not in required:
                    required.append(field.property_name)
                continue

            target = field.type.name
            if is_primitive(target):
                properties[field.property_name] = self._property_schema(field, hop)
                continue
            embedded = self._lookup(target, hop)
            if embedded.underlying is not None:
                properties[field.property_name] = self._property_schema(field, hop)
                continue
            if target in self._in_flight or self._embeds(target, struct.name):
                bases.append(SchemaNode(ref=target))
                self._worklist.append((target, hop))
                continue

            self._in_flight.add(target)
            try:
                inner = self._flatten(embedded, hop)
            finally:
                self._in_flight.discard(target)
            for key, schema in inner.properties.items():
                if key in own_names or key in properties:
                    continue
                properties[key] = schema
                if key in inner.required and key not in required:
                    required.append(key)
            for base in inner.bases:
                if base not in bases:
                    bases.append(base)

        flat = _Flattened(properties, required, bases)
        self._flattened[struct.name] = flat
        return flat

    def _embeds(self, start: str, goal: str) -> bool:
        """Whether *goal* is reachable from *start* along embedding edges."""
        seen: set[str] = set()
        pending = [start]
        while pending:
            name = pending.pop()
            if name == goal:
                return True
            if name in seen:
                continue
            seen.add(name)
            struct = self._table.lookup(name)
            if struct is not None:
                pending.extend(struct.embedded)
        return False

    def _property_schema(self, field: FieldDef, origin: Origin) -> SchemaNode:
        node = self.schema_for(field.type, origin)
        target = node
        if field.enum and node.items is not None:
            target = node.items
        annotations = {
            "enum": list(field.enum),
            "format": field.format,
            "minimum": field.minimum,
            "maximum": field.maximum,
            "min_length": field.min_length,
            "max_length": field.max_length,
        }
        target_update = {k: v for k, v in annotations.items() if v not in (None, [])}
        if target_update:
            if target is node:
                node = node.model_copy(update=target_update)
            else:
                node = node.model_copy(update={"items": target.model_copy(update=target_update)})
        own = {
            "description": field.description,
            "example": field.example,
            "default": field.default,
        }
        own_update = {k: v for k, v in own.items() if v is not None}
        return node.model_copy(update=own_update) if own_update else node


def collect_refs(ref: TypeRef) -> list[str]:
    """Component names a use-site reference to *ref* needs, in order."""
    names: list[str] = []
    inline_schema(ref, names.append)
    return names


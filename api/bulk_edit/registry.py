"""
Field metadata registry for bulk edit.

Static description of every entity kind the engine can operate on: its
table, display columns, ordering and the filterable/editable fields with
their types. Relation sources describe how to list `{id, displayName}`
options for relation fields.

Loaded once at import and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any

from .errors import UnknownEntityKind


class EntityKind(str, Enum):
    COMPETITION = "competition"
    EVENT = "event"
    EDITION = "edition"
    ORGANIZER = "organizer"
    SPECIAL_SERIES = "specialSeries"
    SERVICE = "service"
    POST = "post"


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"
    RELATION = "relation"
    DATE = "date"


@dataclass(frozen=True)
class FieldMetadata:
    name: str
    label: str
    type: FieldType
    filterable: bool = True
    editable: bool = True
    enum_values: tuple[str, ...] = ()
    relation_entity: str | None = None
    nullable: bool = False
    integer: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "label": self.label,
            "type": self.type.value,
            "filterable": self.filterable,
            "editable": self.editable,
            "nullable": self.nullable,
        }
        if self.type is FieldType.ENUM:
            out["enumValues"] = list(self.enum_values)
            out["enumLabels"] = {v: enum_label(v) for v in self.enum_values}
        if self.type is FieldType.RELATION:
            out["relationEntity"] = self.relation_entity
        if self.type is FieldType.NUMBER:
            out["integer"] = self.integer
        return out


@dataclass(frozen=True)
class EntityMetadata:
    kind: EntityKind
    label: str
    table: str
    fields: tuple[FieldMetadata, ...]
    # First non-empty column wins; falls back to the id.
    display_columns: tuple[str, ...] = ("name", "slug")
    # (column, descending)
    order_by: tuple[tuple[str, bool], ...] = (("name", False),)
    _by_name: dict[str, FieldMetadata] = dataclass_field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        self._by_name.update({f.name: f for f in self.fields})

    def field(self, name: str) -> FieldMetadata | None:
        return self._by_name.get(name)

    @property
    def columns(self) -> tuple[str, ...]:
        """Every column a Record of this kind carries (id first)."""
        names = [f.name for f in self.fields]
        for col in self.display_columns:
            if col not in names:
                names.append(col)
        return tuple(names)

    def display_name(self, record: dict[str, Any]) -> str:
        for col in self.display_columns:
            value = record.get(col)
            if value not in (None, ""):
                return str(value)
        return str(record.get("id"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.kind.value,
            "label": self.label,
            "fields": [f.to_dict() for f in self.fields],
        }


@dataclass(frozen=True)
class RelationSource:
    name: str
    table: str
    label_column: str = "name"
    # Static equality constraints, e.g. only published organizers are offered.
    where: tuple[tuple[str, Any], ...] = ()
    order_by: tuple[tuple[str, bool], ...] = (("name", False),)


STATUS_VALUES = ("DRAFT", "PUBLISHED", "CANCELLED")
LANGUAGE_VALUES = ("ES", "EN", "IT", "CA", "FR", "DE")

_ENUM_LABELS: dict[str, str] = {
    "DRAFT": "Borrador",
    "PUBLISHED": "Publicado",
    "CANCELLED": "Cancelado",
    "ARCHIVED": "Archivado",
    "ES": "Español",
    "EN": "English",
    "IT": "Italiano",
    "CA": "Català",
    "FR": "Français",
    "DE": "Deutsch",
    "UPCOMING": "Próxima",
    "REGISTRATION_OPEN": "Inscripción abierta",
    "REGISTRATION_CLOSED": "Inscripción cerrada",
    "ONGOING": "En curso",
    "FINISHED": "Finalizada",
    "NOT_OPEN": "No abierta",
    "OPEN": "Abierta",
    "FULL": "Completa",
    "CLOSED": "Cerrada",
}


def enum_label(value: Any) -> str:
    if value is None:
        return ""
    return _ENUM_LABELS.get(str(value), str(value))


def _id_field(source: str) -> FieldMetadata:
    return FieldMetadata("id", "ID", FieldType.RELATION, editable=False, relation_entity=source)


def _status(values: tuple[str, ...] = STATUS_VALUES) -> FieldMetadata:
    return FieldMetadata("status", "Estado", FieldType.ENUM, enum_values=values)


def _language() -> FieldMetadata:
    return FieldMetadata("language", "Idioma", FieldType.ENUM, enum_values=LANGUAGE_VALUES, nullable=True)


def _text(name: str, label: str, *, nullable: bool = True) -> FieldMetadata:
    return FieldMetadata(name, label, FieldType.STRING, nullable=nullable)


def _number(name: str, label: str, *, integer: bool = False) -> FieldMetadata:
    return FieldMetadata(name, label, FieldType.NUMBER, nullable=True, integer=integer)


_ENTITIES: tuple[EntityMetadata, ...] = (
    EntityMetadata(
        kind=EntityKind.COMPETITION,
        label="Competiciones",
        table="competitions",
        fields=(
            _id_field("competition"),
            _text("name", "Nombre", nullable=False),
            _status(),
            FieldMetadata("featured", "Destacada", FieldType.BOOLEAN),
            _number("baseDistance", "Distancia (km)"),
            _number("baseElevation", "Desnivel (m+)", integer=True),
            _number("itraPoints", "Puntos ITRA", integer=True),
            FieldMetadata(
                "utmbIndex",
                "Indice UTMB",
                FieldType.ENUM,
                enum_values=("INDEX_20K", "INDEX_50K", "INDEX_100K", "INDEX_100M"),
                nullable=True,
            ),
            FieldMetadata(
                "raceType",
                "Tipo de carrera",
                FieldType.ENUM,
                enum_values=("TRAIL", "ULTRA", "VERTICAL", "SKYRUNNING", "CANICROSS", "OTHER"),
                nullable=True,
            ),
            _language(),
            FieldMetadata(
                "terrainTypeId",
                "Tipo de terreno",
                FieldType.RELATION,
                relation_entity="terrainType",
                nullable=True,
            ),
            FieldMetadata("eventId", "Evento", FieldType.RELATION, relation_entity="event", editable=False),
            FieldMetadata("createdAt", "Creada", FieldType.DATE, editable=False),
        ),
    ),
    EntityMetadata(
        kind=EntityKind.EVENT,
        label="Eventos",
        table="events",
        fields=(
            _id_field("event"),
            _text("name", "Nombre", nullable=False),
            _status(),
            FieldMetadata("featured", "Destacado", FieldType.BOOLEAN),
            _text("country", "Pais"),
            _text("city", "Ciudad"),
            _language(),
            _number("typicalMonth", "Mes tipico", integer=True),
            FieldMetadata(
                "organizerId",
                "Organizador",
                FieldType.RELATION,
                relation_entity="organizer",
                nullable=True,
            ),
            FieldMetadata("createdAt", "Creado", FieldType.DATE, editable=False),
        ),
    ),
    EntityMetadata(
        kind=EntityKind.EDITION,
        label="Ediciones",
        table="editions",
        display_columns=("slug",),
        order_by=(("year", True),),
        fields=(
            _id_field("edition"),
            _number("year", "Ano", integer=True),
            _status(
                ("UPCOMING", "REGISTRATION_OPEN", "REGISTRATION_CLOSED", "ONGOING", "FINISHED", "CANCELLED")
            ),
            _number("distance", "Distancia (km)"),
            _number("elevation", "Desnivel (m+)", integer=True),
            _number("maxParticipants", "Max participantes", integer=True),
            FieldMetadata(
                "registrationStatus",
                "Estado inscripcion",
                FieldType.ENUM,
                enum_values=("NOT_OPEN", "OPEN", "FULL", "CLOSED"),
            ),
            FieldMetadata("startDate", "Fecha de inicio", FieldType.DATE, nullable=True),
            FieldMetadata(
                "competitionId",
                "Competicion",
                FieldType.RELATION,
                relation_entity="competition",
                editable=False,
            ),
        ),
    ),
    EntityMetadata(
        kind=EntityKind.ORGANIZER,
        label="Organizadores",
        table="organizers",
        fields=(
            _id_field("organizer"),
            _text("name", "Nombre", nullable=False),
            _status(),
            _text("country", "Pais"),
            _text("website", "Web"),
        ),
    ),
    EntityMetadata(
        kind=EntityKind.SPECIAL_SERIES,
        label="Special Series",
        table="special_series",
        fields=(
            _id_field("specialSeries"),
            _text("name", "Nombre", nullable=False),
            _status(),
            _text("country", "Pais"),
            _language(),
        ),
    ),
    EntityMetadata(
        kind=EntityKind.SERVICE,
        label="Servicios",
        table="services",
        fields=(
            _id_field("service"),
            _text("name", "Nombre", nullable=False),
            _status(),
            FieldMetadata("featured", "Destacado", FieldType.BOOLEAN),
            _text("country", "Pais"),
            _text("city", "Ciudad"),
            _language(),
            FieldMetadata(
                "categoryId",
                "Categoria",
                FieldType.RELATION,
                relation_entity="serviceCategory",
                nullable=True,
            ),
        ),
    ),
    EntityMetadata(
        kind=EntityKind.POST,
        label="Posts",
        table="posts",
        display_columns=("title", "slug"),
        order_by=(("createdAt", True),),
        fields=(
            _id_field("post"),
            _text("title", "Titulo", nullable=False),
            _status(("DRAFT", "PUBLISHED", "ARCHIVED")),
            FieldMetadata(
                "category",
                "Categoria",
                FieldType.ENUM,
                enum_values=(
                    "GENERAL",
                    "TRAINING",
                    "NUTRITION",
                    "GEAR",
                    "DESTINATIONS",
                    "INTERVIEWS",
                    "RACE_REPORTS",
                    "TIPS",
                ),
            ),
            _language(),
            FieldMetadata("createdAt", "Creado", FieldType.DATE, editable=False),
        ),
    ),
)

_RELATION_SOURCES: tuple[RelationSource, ...] = (
    RelationSource("specialSeries", "special_series", where=(("status", "PUBLISHED"),)),
    RelationSource(
        "terrainType",
        "terrain_types",
        where=(("isActive", True),),
        order_by=(("sortOrder", False),),
    ),
    RelationSource("organizer", "organizers", where=(("status", "PUBLISHED"),)),
    RelationSource("event", "events"),
    RelationSource("competition", "competitions"),
    RelationSource("serviceCategory", "service_categories"),
    RelationSource("edition", "editions", label_column="slug", order_by=(("year", True),)),
    RelationSource("service", "services"),
    RelationSource("post", "posts", label_column="title", order_by=(("createdAt", True),)),
)

_BY_KIND: dict[EntityKind, EntityMetadata] = {e.kind: e for e in _ENTITIES}
_SOURCES: dict[str, RelationSource] = {s.name: s for s in _RELATION_SOURCES}


def _check_registry() -> None:
    for entity in _ENTITIES:
        seen: set[str] = set()
        for f in entity.fields:
            if f.name in seen:
                raise RuntimeError(f"Duplicate field {entity.kind.value}.{f.name}")
            seen.add(f.name)
            if f.type is FieldType.ENUM and not f.enum_values:
                raise RuntimeError(f"Enum field {entity.kind.value}.{f.name} has no enum_values")
            if f.type is FieldType.RELATION and f.relation_entity not in _SOURCES:
                raise RuntimeError(
                    f"Relation field {entity.kind.value}.{f.name} points at unknown source "
                    f"{f.relation_entity!r}"
                )
        if entity.field("id") is None:
            raise RuntimeError(f"Entity {entity.kind.value} has no id field")


_check_registry()


def parse_kind(raw: str | EntityKind) -> EntityKind:
    if isinstance(raw, EntityKind):
        return raw
    try:
        return EntityKind((raw or "").strip())
    except ValueError as exc:
        raise UnknownEntityKind(
            f"Unknown entity kind: {raw!r}",
            entity_type=raw,
            expected=[k.value for k in EntityKind],
        ) from exc


def describe(kind: str | EntityKind) -> EntityMetadata:
    return _BY_KIND[parse_kind(kind)]


def all_entities() -> list[EntityMetadata]:
    return list(_ENTITIES)


def field(kind: str | EntityKind, name: str) -> FieldMetadata | None:
    return describe(kind).field(name)


def relation_source(name: str) -> RelationSource:
    source = _SOURCES.get((name or "").strip())
    if source is None:
        raise UnknownEntityKind(
            f"Unknown relation entity: {name!r}",
            relation_entity=name,
            expected=sorted(_SOURCES),
        )
    return source

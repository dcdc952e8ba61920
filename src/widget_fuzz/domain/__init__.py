"""
widget-fuzz — domain layer

File: src/widget_fuzz/domain/__init__.py

Purpose
- Schema model, actions with constraints, domain events, identifiers.

Import boundary rules
- Domain layer stays free of IO side effects (catalog file loading is explicit).
"""

from widget_fuzz.domain.actions import (
    Action,
    ActionCatalog,
    ActionCatalogError,
    ActionLogEntry,
    Constraint,
    ConstraintKind,
    ConstraintResult,
    InputSlot,
    PreconditionFailed,
    check_postconditions,
    check_preconditions,
)
from widget_fuzz.domain.catalog import SchemaCatalog, SchemaCatalogError
from widget_fuzz.domain.events import DomainEvent
from widget_fuzz.domain.schema import (
    Cardinality,
    ObjectInstance,
    ObjectSchema,
    PropertyDefinition,
    PropertyType,
    RelationshipDefinition,
    collect_references,
    is_of_schema,
    new_object_instance,
)

__all__ = [
    "Action",
    "ActionCatalog",
    "ActionCatalogError",
    "ActionLogEntry",
    "Cardinality",
    "Constraint",
    "ConstraintKind",
    "ConstraintResult",
    "DomainEvent",
    "InputSlot",
    "ObjectInstance",
    "ObjectSchema",
    "PreconditionFailed",
    "PropertyDefinition",
    "PropertyType",
    "RelationshipDefinition",
    "SchemaCatalog",
    "SchemaCatalogError",
    "check_postconditions",
    "check_preconditions",
    "collect_references",
    "is_of_schema",
    "new_object_instance",
]

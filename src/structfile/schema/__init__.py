"""Schema subsystem: static FieldSpec tables and the document validator."""

from structfile.schema.fields import Constraint, FieldSpec, FieldType
from structfile.schema.tables import SCHEMAS, schema_for
from structfile.schema.validator import iter_path_fields, validate_document

__all__ = [
    "Constraint",
    "FieldSpec",
    "FieldType",
    "SCHEMAS",
    "iter_path_fields",
    "schema_for",
    "validate_document",
]

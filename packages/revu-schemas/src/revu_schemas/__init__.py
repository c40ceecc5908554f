"""revu-schemas: Shared Pydantic schemas for revu."""

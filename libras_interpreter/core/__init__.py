"""Pipeline loop, shared domain types, events and errors."""

"""Pure domain model for kit licenses: no I/O, no database, no frameworks."""

"""Blueprint helpers: error responses and lookups."""

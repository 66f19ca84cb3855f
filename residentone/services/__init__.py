"""Service layer. Services own every db.session write; blueprints only parse and map errors."""

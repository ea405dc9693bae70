"""Flask blueprints for the catalog API and the guarded form API."""

"""Feature packages (models, schemas, services and routers per resource)."""

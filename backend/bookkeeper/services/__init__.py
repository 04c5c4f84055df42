"""Service layer: business logic kept out of the route handlers."""

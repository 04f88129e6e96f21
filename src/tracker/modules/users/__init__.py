"""Users module - principals belonging to a tenant and optionally a client."""

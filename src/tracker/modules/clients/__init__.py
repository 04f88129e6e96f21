"""Clients module - customer organisations owned by a tenant."""

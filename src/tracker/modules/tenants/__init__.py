"""Tenants module - the SaaS operator accounts at the root of all scoping."""

"""Builders turning CRD specs into clients and records."""

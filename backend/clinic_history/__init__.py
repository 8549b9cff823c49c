"""Clinic history projection service."""

"""Submission collections and the in-memory catalog store."""

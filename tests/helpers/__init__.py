"""
Test helpers for the single-table layer.

Sample object types and repository configurations shared by the unit and
integration tests.
"""

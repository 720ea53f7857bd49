"""
Core Package

Immutable models, the persisted document schema and serialization.
"""

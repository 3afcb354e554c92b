"""Core game primitives: the event vocabulary and the per-instance state model.

Free of FastAPI and redis imports.
"""

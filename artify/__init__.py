"""
Backend package for the Artify art-portfolio API.

This package provides a FastAPI application on top of a document store
abstraction, with a MongoDB client for deployments and an in-memory client
for local runs and tests.
"""

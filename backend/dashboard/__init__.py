"""Application package for the course administration dashboard.

This package exposes the service, repository and model modules used by
the FastAPI application. Listing screens share one pagination contract
(query parameters -> page request -> query -> page result -> table);
individual modules contain the concrete implementations.
"""

"""
Application layer - use cases and DTOs.

Request/response DTOs define the API contracts; use cases coordinate
core services with rate limiting and other cross-cutting checks.
"""

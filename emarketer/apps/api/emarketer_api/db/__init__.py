"""Persistence layer: engine, sessions, ORM models, repositories, Redis."""

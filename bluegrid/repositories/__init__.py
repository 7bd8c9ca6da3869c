"""Repository package: database query layer.

Each repository extends BaseRepository for generic CRUD and adds
entity-specific queries. Repositories never commit.
"""

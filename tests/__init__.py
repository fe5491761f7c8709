"""BookSwap test suite.

Unit tests run services against the in-memory doubles in ``tests.fakes``;
integration tests drive the HTTP API through an ASGI client and the SQL
repositories against an in-memory SQLite database.
"""

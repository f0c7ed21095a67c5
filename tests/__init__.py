"""
Seasonboard Test Suite
======================

Test Organization
-----------------
- tests/unit/          : Fast unit tests against in-process fakes
- tests/integration/   : Integration tests with testcontainers (real Redis)
- tests/fakes.py       : Fake Redis, clock, provider and blob store

Testing Philosophy
------------------
- Unit tests: Fast, isolated, test cache and service semantics
- Integration tests: Slower, test real Redis behavior
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""

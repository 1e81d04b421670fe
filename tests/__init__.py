"""
lexicache Test Suite
====================

Test Organization
-----------------
- tests/unit/ : Fast unit tests (no external services; Redis is mocked)

Testing Philosophy
------------------
- Deterministic time through an injected fake clock
- One behavior per test, grouped in classes by component
- Follow AAA pattern: Arrange, Act, Assert
"""

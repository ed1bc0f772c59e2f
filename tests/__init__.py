"""
groveconf Test Suite
====================

Test Organization
-----------------
- tests/unit/          : Fast unit tests (no network, temporary files only)
- tests/integration/   : End-to-end tests driving watchers, backups and signals

Testing Philosophy
------------------
- Unit tests: Fast, isolated, one behavior per test
- Integration tests: Real threads and files, bounded waits
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""

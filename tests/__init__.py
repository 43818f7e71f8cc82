"""
Test suite for the task/user API.

This package contains:
- unit/: models, query translation, side effects, coordinator (mocked stores)
- integration/: REST API tests through the Flask test client
"""

"""
API test package for the task/user API.

This package contains tests for the REST API endpoints.
Tests use the Flask test client and demonstrate:
- CRUD operation testing
- Input validation testing
- Cross-resource consistency testing
- Error handling testing
"""

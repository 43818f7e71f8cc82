"""
Routes package for the task/user API.

This package contains route blueprints:
- api: REST API endpoints for tasks and users
"""

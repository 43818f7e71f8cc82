"""Unit tests for models, query translation, side effects and the coordinator."""

"""Shared utilities for covmerge."""

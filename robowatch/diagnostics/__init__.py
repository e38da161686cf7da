"""Diagnostic helpers for robowatch."""

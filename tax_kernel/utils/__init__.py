"""Utility helpers for the tax kernel."""

"""Shared helpers for pixpy."""

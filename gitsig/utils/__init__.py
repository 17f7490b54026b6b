"""Utility helpers for gitsig."""

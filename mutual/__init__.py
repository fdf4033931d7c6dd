"""Matching and active-conversation service."""

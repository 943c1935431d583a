"""Feedback intake and relay service."""

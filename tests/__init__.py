"""Tests for context_tiers."""

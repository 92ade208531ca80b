"""Tests for orchestrator-ai."""

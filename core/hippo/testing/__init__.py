"""Testing utilities for agent reasoning: regression tests and the deploy gate."""

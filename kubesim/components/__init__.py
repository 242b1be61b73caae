"""Tick functions for autoscalers and deployment strategies."""

"""Lumina — a personal assistant that manages finances, schedule and journal through tool calls."""

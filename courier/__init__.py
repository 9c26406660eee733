"""Courier — durable one-shot email scheduling."""

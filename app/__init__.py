"""Notification fan-out service and its reconciling client."""

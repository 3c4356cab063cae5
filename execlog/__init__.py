"""Structured event log for remote command and file-transfer lifecycles."""

"""Logging and identifier helpers shared across OSINT Hub."""

"""Packet coding, command protocol, pump queries and history decoding for Medtronic insulin pumps."""

__version__ = "0.1.0"

__all__ = ["codec", "crc", "model", "utility", "schedule", "history", "commands", "pump"]
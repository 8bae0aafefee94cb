"""Pydantic models for wire frames, chat payloads and transport errors."""

"""Core domain types, configuration and cross-cutting helpers."""

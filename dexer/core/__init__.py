"""Core types and collaborator protocols shared across dexer layers."""

"""Core: settings, logging, exceptions."""

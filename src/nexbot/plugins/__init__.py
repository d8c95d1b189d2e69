"""Built-in plugins. Every module here is loaded at startup."""

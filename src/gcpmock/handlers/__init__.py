"""Request handlers, one class per resource family."""

"""Pure desired-state builders, one module per pipeline stage."""

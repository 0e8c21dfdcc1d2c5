"""Event model, feed parsing, transport and publication."""

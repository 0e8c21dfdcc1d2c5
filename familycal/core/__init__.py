"""Configuration, logging, time helpers and exceptions."""

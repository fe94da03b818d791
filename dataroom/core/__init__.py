"""Configuration, logging, auth and shared infrastructure."""

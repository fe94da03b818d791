"""Dataroom service: folder trees, trash, access control and viewer credentials."""

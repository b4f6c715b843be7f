"""Modules internal to localcert."""

"""Thumbnail proxying: request handler and response header processing."""

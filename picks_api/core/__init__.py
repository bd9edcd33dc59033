"""Core primitives shared by the feature packages."""

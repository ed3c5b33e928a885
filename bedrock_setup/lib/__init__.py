"""Library modules for the setup scripts."""

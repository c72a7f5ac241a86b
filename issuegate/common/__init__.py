"""Small helpers shared across issuegate packages."""

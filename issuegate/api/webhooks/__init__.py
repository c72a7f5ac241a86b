"""GitHub webhook delivery endpoint."""

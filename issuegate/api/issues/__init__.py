"""Issue and comment resources forwarded to GitHub."""

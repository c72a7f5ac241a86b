"""Read-only resources over the webhook event store."""

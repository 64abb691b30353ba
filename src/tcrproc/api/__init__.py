"""Read-only HTTP query API over the processed aggregates."""

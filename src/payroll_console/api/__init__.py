"""Console HTTP API."""

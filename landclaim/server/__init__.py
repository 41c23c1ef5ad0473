"""HTTP API for claim sessions and territories."""

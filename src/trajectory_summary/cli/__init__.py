"""Command-line interface of trajectory-summary."""

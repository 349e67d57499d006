"""Console output for the dexer CLI."""

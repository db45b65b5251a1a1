"""Core services for the Loom engine: state, analysis, adapters and assets."""

"""HTTP API over the pipeline monitor."""

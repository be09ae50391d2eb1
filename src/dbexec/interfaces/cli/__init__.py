"""Console interface helpers."""

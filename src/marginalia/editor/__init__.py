"""Document model, text normalization, diffing, and editing sessions."""

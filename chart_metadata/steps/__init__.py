"""Steps used to load, validate and save chart metadata."""

"""Different utilities to make the software easier to write."""

"""PyQt6 shell for the closure lab. Importing the package does not import Qt."""

"""Server process lifecycle."""

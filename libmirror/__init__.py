"""Local mirror of a GitHub-backed content library."""

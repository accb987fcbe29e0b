"""Quiz assembly and grading engine."""

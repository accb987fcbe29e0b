"""
Grading module: scores submitted answers against canonical answers.
"""

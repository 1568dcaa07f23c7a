"""Exam Portal: exam authoring, auto-grading and results API."""

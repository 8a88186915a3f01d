"""Exam planner: parse exam catalogs and keep a personal exam schedule."""

"""Reporting: tabular export and charts."""

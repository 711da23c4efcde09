"""Compliance assessment tracker data engine.

Keeps controls, framework requirements, quarterly assessments, evidence
artifacts and findings consistent with one another, and moves them in and
out of CSV, JSON and Jira/Confluence-shaped records.
"""

__version__ = "0.1.0"

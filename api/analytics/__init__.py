"""
First-party analytics: raw events, attribution and revenue dashboards.
"""

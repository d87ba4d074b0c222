"""
Client-side monitoring: metrics ingestion, aggregates and alerting.
"""

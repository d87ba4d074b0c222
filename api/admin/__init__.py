"""
Admin dashboard counters and maintenance endpoints.
"""

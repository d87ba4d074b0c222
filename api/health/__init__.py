"""
Liveness and readiness checks.
"""

"""
Audit log, security incidents and client error intake.
"""

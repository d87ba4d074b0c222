"""
Staff and customer accounts: passwords, JWT access tokens, rotating refresh tokens.
"""

"""
Hosted checkout sessions, billing portal and payment webhooks.
"""

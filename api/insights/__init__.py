"""
Insights (blog articles) managed through the admin API.
"""

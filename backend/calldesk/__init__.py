"""Call-scheduling and dynamic priority engine for sales outreach worklists"""

"""Turn/action processing helpers.

This package centralizes who-may-do-what-when checks so the HTTP routes and
the rules engine reject actions the same way and log them consistently.
"""

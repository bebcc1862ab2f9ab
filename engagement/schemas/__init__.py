"""
Request models for the engagement API.
"""

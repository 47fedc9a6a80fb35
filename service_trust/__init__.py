"""
Trust service for the Trust Layer.
"""

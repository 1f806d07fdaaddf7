"""
Core application modules.
Contains configuration, logging, metrics, tracing, and request middleware.
"""

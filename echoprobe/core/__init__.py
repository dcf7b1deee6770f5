"""
Core configuration, logging, errors and timing helpers for EchoProbe.
"""

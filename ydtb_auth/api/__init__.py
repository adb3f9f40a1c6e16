"""
YDTB Auth REST API
"""

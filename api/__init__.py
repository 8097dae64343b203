"""
AstroVision HTTP API.
"""

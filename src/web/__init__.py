"""
Status API and reference detection endpoint.
"""

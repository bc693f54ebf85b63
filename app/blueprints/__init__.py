"""
Studio Client Portal
HTTP blueprints (one module per API area).
"""

"""
Command line commands for svntag.
"""

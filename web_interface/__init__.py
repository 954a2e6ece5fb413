"""
Web interface for the Block Editor Core.
"""

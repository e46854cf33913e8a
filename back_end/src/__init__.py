"""
Term reduction back-end package.
"""
__version__ = "1.0.0"

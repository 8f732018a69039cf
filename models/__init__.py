"""
models/ - Result Types
======================
Plain dataclasses returned by the facade.
"""

"""
Leadhub - lead assignment and cancellation workflow for the partner marketplace.
"""
__version__ = "0.1.0"

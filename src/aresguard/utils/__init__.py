r"""Utility modules."""

"""Seed control, reproducible random streams, locale scoping and thread leak
detection. Nothing in here depends on a particular test framework.
"""

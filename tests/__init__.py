"""
Tests Package.

This package contains test suites for validating the space-time cube layout,
including unit tests for the timeline, graph and geometry primitives, the
synchroniser and the forces, and end-to-end layout runs. The tests ensure
correctness of the mirror graph construction, the force fields and the
annealing iteration driver.
"""

# Tests Package

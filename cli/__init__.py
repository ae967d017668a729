"""
Benchmark roles and the command-line entry point.
"""

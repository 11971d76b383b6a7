"""
codetrack - coding platform activity tracker.

Synchronizes students' LeetCode, CodeChef, GeeksforGeeks, HackerRank and GitHub
profiles into per-student performance records and ranks students with a
configurable grading rule.
"""

__version__ = "1.0.0"

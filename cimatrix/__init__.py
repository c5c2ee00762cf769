"""cimatrix: trigger-driven CI job planning.

Turns a trigger event and a set of declared jobs into an ordered execution
plan of (job, cell, phase) entries for an external command runner.
"""

__version__ = "0.1.0"

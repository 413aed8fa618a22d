"""
Strata: version history and audit trails for tracked records.

Every create, update and destroy of a tracked record becomes an immutable
version row. Past states can be rebuilt from those rows at any time.
"""

__version__ = "0.1.0"

"""GitHub Organization Migration Tool

Migrates teams, Actions variables and secrets, packages and Git LFS objects
from one GitHub organization to another using the REST and GraphQL APIs.
"""

__version__ = '0.1.0'

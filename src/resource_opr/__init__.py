"""Operator engine for parent/children resource forests.

Applies parent operators first, harvests owner references from their
results and stamps them onto child resources. On failure the forest
can be purged by deleting every parent.

Package name uses 'resource_opr' (short for operator) to avoid collision
with Python's stdlib 'operator' module.
"""

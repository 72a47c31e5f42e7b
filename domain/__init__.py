"""Territory Planner Domain Layer.

This package contains the core business logic organized by bounded contexts:
- terrain: Physical geography, traversal speed fields, land classification
- territory: Raycast expansion, coastline refinement, boundary clipping
"""

# Imports alphabetized per project style (isort)
from domain import terrain, territory

__all__ = ["terrain", "territory"]

"""Terrain Bounded Context.

Responsible for physical geography and traversal cost:
- Value Objects: GeoPoint, BoundingBox, SpeedGrid, TerrainCategory
- Ports: SpeedField, PassabilityField, SpeedRasterRepository
- Services: speed field realizations, GeometryClassifier, lattice builder
"""

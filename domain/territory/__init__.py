"""Territory Bounded Context.

Responsible for claiming territory from a seed point:
- Value Objects: ClaimConfig, RayResult, RawTerritory, GeometryInput, GeometryResult
- Services: march_ray, approximate_coastline, sweep_bearings, refine_territory,
  compute_territory
"""

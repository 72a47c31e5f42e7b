"""Application Layer.

Infrastructure adapters that feed the domain layer.
This layer handles file I/O and converts external formats into domain Value Objects.
"""

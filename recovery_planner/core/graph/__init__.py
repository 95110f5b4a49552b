"""Graph model construction.

Edges are never authored directly: they are projected from node dependency
lists every time a graph snapshot is built or read.
"""

"""
Baking pipeline, pose database, statistics and the query engine.
"""

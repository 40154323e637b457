"""
LakeSchema: turns raw data-lake files (CSV, JSON, XML, delimited text)
into a relational schema and sample data through a model-driven,
self-correcting pipeline.
"""

__version__ = "1.0.0"

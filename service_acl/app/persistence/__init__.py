"""
Rule store and scope store backends (in-memory and PostgreSQL).
"""

"""
Core utilities — domain exceptions shared across listener, ingestion,
analytics, decoders and the agent worker.
"""

"""
Price engine services: FX resolution, consolidation, outlier filtering,
aggregation, confidence scoring, history merging and request orchestration.
"""

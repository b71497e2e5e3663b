"""Extraction/merge engine: models, profiling, segmentation, XLIFF and reconciliation."""

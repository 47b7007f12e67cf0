"""
HTTP interface for the segmentation query layer.
"""

"""
Core utilities — exceptions shared by the reader, storage and sync layers.
"""

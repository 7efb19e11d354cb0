"""
SageRun - cleanmgr StateFlags helper for Windows disk cleanup.
"""

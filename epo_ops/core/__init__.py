"""
Request execution core: configuration, authentication, retries, quota and batching.
"""

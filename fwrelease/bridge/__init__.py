"""Bridges between the pipeline and the systems it talks to.

Modules
-------
vcs
    Wraps the ``git`` executable: HEAD state, tags, history.
object_store
    The S3 subset used for artifacts (``head`` / ``put`` / ``delete``).
credentials
    Cross-account session via STS, with account verification.
publish_api
    httpx client for the remote update API's publish endpoint.
"""

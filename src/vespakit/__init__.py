"""
vespakit - Throttled, retrying and cached client for the Knack REST API.

Carries the request pacing, retry and caching behaviour of the VESPA
customisation scripts, plus the record workflows (profile lookup,
staff import) built on top of it.
"""

__version__ = "0.1.0"
__app_name__ = "vespakit"

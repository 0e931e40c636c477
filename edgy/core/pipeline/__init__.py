"""Job pipeline: response cache, job store and the pipeline orchestrator.

Submodules are imported directly (``edgy.core.pipeline.orchestrator``)
to keep the gateway -> response_cache import free of cycles.
"""

# Subpackages are imported explicitly by callers, e.g.
# `from edgy.core.analysis.engine import run_analysis`, so that the pure
# analysis layer can be used without pulling in httpx or FastAPI.

"""
API routers for the attribution engine.

- attribution: single and batch donation attribution
- creative_intelligence: end-to-end creative analytics payload
"""

from attribution_engine.api.attribution import router as attribution_router
from attribution_engine.api.creative_intelligence import router as creative_intelligence_router

__all__ = ['attribution_router', 'creative_intelligence_router']

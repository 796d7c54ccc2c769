"""
Attribution Engine Package.

Attribution and creative-performance analytics for the fundraising platform.
Resolves donation tracking codes into channels with calibrated confidence and
turns the attributed revenue into significance-tested creative rankings,
leading-indicator correlations, fatigue alerts and budget recommendations.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, dependencies and errors
    - models: Pydantic schemas and enums
    - services: Attribution and analytics services (pure computations)
    - sql: Parameterized SQL queries for the read-only inputs
"""

__version__ = "1.0.0"

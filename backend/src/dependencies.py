"""Global FastAPI dependencies for access to the privacy engine.

This module provides:
- get_privacy_engine: The process-wide engine built at startup
- get_privacy_service: Storage decision / consent / data-subject facade
- get_audit_trail: Privacy audit log reader

Components are built once in the application lifespan and kept on app.state;
endpoints receive them by reference through these dependencies.
"""

from fastapi import Depends, HTTPException, Request, status

from audit.service import AuditTrail
from privacy.engine import PrivacyEngine
from privacy.service import PrivacyService


def get_privacy_engine(request: Request) -> PrivacyEngine:
    """Return the engine attached to the running application.

    Raises:
        HTTPException 503: If the application has not finished starting up
    """
    engine = getattr(request.app.state, "privacy_engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Privacy engine not initialized",
        )
    return engine


def get_privacy_service(engine: PrivacyEngine = Depends(get_privacy_engine)) -> PrivacyService:
    return engine.service


def get_audit_trail(engine: PrivacyEngine = Depends(get_privacy_engine)) -> AuditTrail:
    return engine.audit

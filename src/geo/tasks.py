import structlog
from celery import shared_task

from .exceptions import CredentialMissingError
from .service import get_geoip_service

logger = structlog.get_logger(__name__)


@shared_task
def refresh_geoip_database(force: bool = False) -> dict[str, bool | str]:
    """Bring the local MaxMind database up to date.

    Scheduled by Celery beat. The web processes pick up the new file on their next lookup.

    Args:
        force: Download even if the checksums match or the refresh window has not passed.

    Returns:
        Whether the database was replaced and why.
    """
    service = get_geoip_service()
    try:
        status = service.update(force=force)
    except CredentialMissingError:
        logger.info("maxmind license key not configured, skipping database refresh")
        return {"updated": False, "reason": "maxmind license key not configured"}
    return {"updated": status.updated, "reason": status.reason}

"""
Metadata Service Layer.
Builds ARC-69 certificate documents and pins them to IPFS.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from app.api.dto.certificate_dto import UploadMetadataRequestDTO
from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.infrastructure.ipfs.ipfs_service import ipfs_service

logger = get_logger(__name__)

METADATA_REQUIRED_MESSAGE = "Learner name, course name, and organization name are required"


def isoformat_utc(value: datetime) -> str:
    """Format a timestamp as UTC ISO-8601 with milliseconds and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def build_certificate_metadata(
    learner_name: str,
    course_name: str,
    organization_name: str,
    description: Optional[str] = None,
    skills: Optional[List[str]] = None,
    grade: Optional[str] = None,
    score: Optional[Union[int, float]] = None,
    valid_until: Optional[datetime] = None,
    issued_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build an ARC-69 certificate document.

    Optional values that are not provided are left out of the document.

    Args:
        learner_name: Learner display name
        course_name: Course name
        organization_name: Issuing organization
        description: Description, defaults to a course completion sentence
        skills: Skills certified
        grade: Grade
        score: Score
        valid_until: End of validity
        issued_at: Issue time, defaults to now

    Returns:
        ARC-69 document
    """
    issued_at = issued_at or datetime.now(timezone.utc)
    verification_url = f"{settings.PUBLIC_BASE_URL}/verify"

    properties: Dict[str, Any] = {
        "certificate_type": "course_completion",
        "issue_date": isoformat_utc(issued_at),
        "valid_from": isoformat_utc(issued_at),
        "valid_until": isoformat_utc(valid_until) if valid_until else None,
        "skills": skills or [],
        "grade": grade,
        "score": score,
        "learner_name": learner_name,
        "course_name": course_name,
        "organization_name": organization_name,
        "verification_url": verification_url,
    }

    return {
        "standard": "arc69",
        "description": description or f"Certificate of completion for {course_name}",
        "external_url": verification_url,
        "properties": {key: value for key, value in properties.items() if value is not None},
    }


def metadata_from_request(
    request: UploadMetadataRequestDTO, organization_name: Optional[str] = None
) -> Dict[str, Any]:
    """Build the document for a request, checking required fields first."""
    organization_name = organization_name or request.organization_name
    required = (request.learner_name, request.course_name, organization_name)
    if not all(value and value.strip() for value in required):
        raise ValidationError(METADATA_REQUIRED_MESSAGE)

    return build_certificate_metadata(
        learner_name=request.learner_name.strip(),
        course_name=request.course_name.strip(),
        organization_name=organization_name.strip(),
        description=request.description,
        skills=request.skills,
        grade=request.grade,
        score=request.score,
        valid_until=request.valid_until,
    )


class MetadataPublisher:
    """Pins certificate metadata. No retries."""

    def __init__(self):
        self.ipfs = ipfs_service

    async def publish(
        self, request: UploadMetadataRequestDTO, organization_name: Optional[str] = None
    ) -> Tuple[str, Dict[str, Any]]:
        """
        Build and pin the metadata for a certificate.

        Args:
            request: Certificate fields
            organization_name: Overrides the organization given in the request

        Returns:
            Tuple of (ipfs_hash, metadata)

        Raises:
            ValidationError: a required field is missing
            ConfigurationError: IPFS credentials are missing
            UploadError: the pinning service rejected the document
        """
        metadata = metadata_from_request(request, organization_name)
        properties = metadata["properties"]

        ipfs_hash = await self.ipfs.pin_json(
            metadata,
            name=f"Certificate-{properties['learner_name']}-{properties['course_name']}",
        )
        logger.info(f"Metadata pinned for {properties['course_name']}: {ipfs_hash}")
        return ipfs_hash, metadata

    async def fetch(self, ipfs_hash: str) -> Optional[Dict[str, Any]]:
        """Read a pinned document back; None when the gateway cannot serve it."""
        return await self.ipfs.fetch_json(ipfs_hash)


# Global service instance
metadata_publisher = MetadataPublisher()

"""
EPO OPS metadata and endpoint definitions.

Contains reference types, number formats, constituents, and the Accept
header table that OPS requires per endpoint family.
"""
from typing import Dict, Optional

# Reference types
REF_TYPE_PUBLICATION = "publication"
REF_TYPE_APPLICATION = "application"
REF_TYPE_PRIORITY = "priority"

REF_TYPES = (REF_TYPE_PUBLICATION, REF_TYPE_APPLICATION, REF_TYPE_PRIORITY)

# Number formats
FORMAT_DOCDB = "docdb"      # CC.number.KC, e.g. EP.1000000.B1
FORMAT_EPODOC = "epodoc"    # CCnumber[KC], e.g. EP1000000
FORMAT_ORIGINAL = "original"

FORMATS = (FORMAT_DOCDB, FORMAT_EPODOC, FORMAT_ORIGINAL)

# Endpoint families (used to pick the Accept header)
ENDPOINT_BIBLIO = "biblio"
ENDPOINT_ABSTRACT = "abstract"
ENDPOINT_FULLTEXT = "fulltext"
ENDPOINT_CLAIMS = "claims"
ENDPOINT_DESCRIPTION = "description"
ENDPOINT_FAMILY = "family"
ENDPOINT_LEGAL = "legal"
ENDPOINT_REGISTER = "register"
ENDPOINT_SEARCH = "search"
ENDPOINT_IMAGES = "images"

# Published-data constituents addressable by number
PUBLISHED_CONSTITUENTS = (
    ENDPOINT_BIBLIO,
    ENDPOINT_ABSTRACT,
    ENDPOINT_CLAIMS,
    ENDPOINT_DESCRIPTION,
    ENDPOINT_FULLTEXT,
)

# Family constituents (None = plain family listing)
FAMILY_CONSTITUENTS = ("biblio", "legal")

# Register constituents
REGISTER_CONSTITUENTS = ("biblio", "events", "procedural-steps")

# Search constituents
SEARCH_CONSTITUENTS = ("biblio", "abstract", "full-cycle")

# Image document types
IMAGE_TYPES = ("fullimage", "thumbnail", "firstpage")

DEFAULT_SEARCH_RANGE = "1-25"

ACCEPT_HEADERS: Dict[str, str] = {
    ENDPOINT_BIBLIO: "application/exchange+xml",
    ENDPOINT_ABSTRACT: "application/exchange+xml",
    ENDPOINT_FULLTEXT: "application/fulltext+xml",
    ENDPOINT_CLAIMS: "application/fulltext+xml",
    ENDPOINT_DESCRIPTION: "application/fulltext+xml",
    ENDPOINT_FAMILY: "application/ops+xml",
    ENDPOINT_LEGAL: "application/ops+xml",
    ENDPOINT_SEARCH: "application/ops+xml",
    ENDPOINT_REGISTER: "application/register+xml",
    ENDPOINT_IMAGES: "application/tiff",
}

DEFAULT_ACCEPT = "application/xml"


def get_accept_header(endpoint: str) -> str:
    """Return the Accept header for an endpoint family (application/xml if unknown)."""
    return ACCEPT_HEADERS.get(endpoint, DEFAULT_ACCEPT)


def endpoint_from_path(path: str) -> Optional[str]:
    """
    Determine the endpoint family from a request URL path.

    Published-data paths look like
    ``.../published-data/publication/{format}/{number}/{constituent}``; the
    constituent three segments after "publication" decides the family.

    Returns:
        Endpoint family name, or None if the path matches no known family
    """
    if "/published-data/publication/" in path:
        parts = path.split("/")
        for i, part in enumerate(parts):
            if part == REF_TYPE_PUBLICATION and i + 3 < len(parts):
                constituent = parts[i + 3]
                if constituent in PUBLISHED_CONSTITUENTS:
                    return constituent
    if "/family/" in path:
        return ENDPOINT_FAMILY
    if "/legal" in path:
        return ENDPOINT_LEGAL
    if "/register" in path:
        return ENDPOINT_REGISTER
    if "/published-data/search" in path:
        return ENDPOINT_SEARCH
    if "/published-data/images" in path:
        return ENDPOINT_IMAGES
    return None


def accept_header_for_path(path: str) -> Optional[str]:
    """
    Accept header for a request path, or None when the path maps to no
    endpoint family (the request's own Accept header is then left alone).
    """
    endpoint = endpoint_from_path(path)
    if endpoint is None:
        return None
    return get_accept_header(endpoint)

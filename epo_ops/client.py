"""
EPO Open Patent Services (OPS) v3.2 client.

Endpoint wrappers over BaseAPIClient. Document endpoints return the raw
XML body as text, image endpoints return raw bytes; parsing is left to
the caller.

Services covered:
- Published data (biblio, abstract, claims, description, fulltext,
  equivalents, images) including multiple-document and bulk retrieval
- Published-data search (CQL)
- INPADOC family and legal status
- EP Register
- Number conversion
- CPC classification
- Usage statistics (developer API)

Docs: https://www.epo.org/en/searching-for-patents/data/web-services/ops
"""
import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from epo_ops.core.api_errors import ValidationError
from epo_ops.core.batch_operations import BulkOptions, execute_bulk
from epo_ops.core.config import DEFAULT_DEVELOPERS_URL, Settings, get_settings
from epo_ops.core.http_client import BaseAPIClient
from epo_ops.core.quota import UsageStats, parse_usage_stats, validate_time_range
from epo_ops.metadata import (
    DEFAULT_SEARCH_RANGE,
    ENDPOINT_ABSTRACT,
    ENDPOINT_BIBLIO,
    ENDPOINT_CLAIMS,
    ENDPOINT_DESCRIPTION,
    ENDPOINT_FULLTEXT,
    FAMILY_CONSTITUENTS,
    FORMAT_EPODOC,
    FORMATS,
    IMAGE_TYPES,
    REF_TYPE_APPLICATION,
    REF_TYPE_PUBLICATION,
    REGISTER_CONSTITUENTS,
    SEARCH_CONSTITUENTS,
)
from epo_ops.validation import (
    format_bulk_body,
    validate_choice,
    validate_count,
    validate_format,
    validate_not_empty,
    validate_numbers,
    validate_ref_type,
)

logger = logging.getLogger(__name__)

CLASSIFICATION_FORMATS = ("cpc", "ecla")
REGISTER_SEARCH_CONSTITUENTS = REGISTER_CONSTITUENTS + ("upp",)
UNIP_REF_TYPES = (REF_TYPE_PUBLICATION, REF_TYPE_APPLICATION)


def _segment(value: str) -> str:
    """Escape a caller-supplied value for use as one URL path segment."""
    return quote(value, safe="")


class OPSClient(BaseAPIClient):
    """
    Client for the EPO OPS REST API.

    Usage:
        async with OPSClient.from_settings() as client:
            xml = await client.get_biblio("publication", "docdb", "EP.1000000.B1")
            print(client.get_last_quota())
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        developers_url: str = DEFAULT_DEVELOPERS_URL,
        **kwargs: Any,
    ):
        """
        Initialize the OPS client.

        Args:
            consumer_key: OPS consumer key
            consumer_secret: OPS consumer secret
            developers_url: Base URL of the developer (usage statistics) API
            **kwargs: Passed to BaseAPIClient (base_url, auth_url, retry and
                timeout settings, transport)
        """
        super().__init__(consumer_key, consumer_secret, **kwargs)
        self.developers_url = developers_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "OPSClient":
        """
        Build a client from Settings (EPO_OPS_* environment / .env).

        Raises:
            ConfigurationError: If the consumer key or secret is missing
        """
        settings = settings or get_settings()
        consumer_key, consumer_secret = settings.require_credentials()
        options: Dict[str, Any] = {
            "base_url": settings.base_url,
            "auth_url": settings.auth_url,
            "developers_url": settings.developers_url,
            "max_retries": settings.max_retries,
            "retry_delay": settings.retry_delay,
            "backoff_factor": settings.backoff_factor,
            "timeout": settings.timeout,
        }
        options.update(kwargs)
        return cls(consumer_key, consumer_secret, **options)

    # =========================================================================
    # Published data
    # =========================================================================

    async def _get_published(
        self,
        constituent: str,
        ref_type: str,
        fmt: str,
        number: str,
        deadline: Optional[float],
    ) -> str:
        validate_ref_type(ref_type)
        validate_format(fmt, number)
        return await self.get_text(
            f"published-data/{ref_type}/{fmt}/{_segment(number)}/{constituent}",
            deadline=deadline,
        )

    async def _post_published(
        self,
        constituent: str,
        ref_type: str,
        fmt: str,
        numbers: Sequence[str],
        deadline: Optional[float],
    ) -> str:
        validate_ref_type(ref_type)
        validate_numbers(numbers, fmt)
        return await self.post_text(
            f"published-data/{ref_type}/{fmt}/{constituent}",
            format_bulk_body(numbers),
            deadline=deadline,
        )

    async def get_biblio(
        self, ref_type: str, fmt: str, number: str, *, deadline: Optional[float] = None
    ) -> str:
        """
        Retrieve bibliographic data for one document.

        Args:
            ref_type: "publication", "application" or "priority"
            fmt: "docdb", "epodoc" or "original"
            number: Document number in the given format (e.g. "EP.1000000.B1")
            deadline: Optional time budget in seconds

        Returns:
            Exchange-format XML
        """
        return await self._get_published(ENDPOINT_BIBLIO, ref_type, fmt, number, deadline)

    async def get_abstract(
        self, ref_type: str, fmt: str, number: str, *, deadline: Optional[float] = None
    ) -> str:
        return await self._get_published(ENDPOINT_ABSTRACT, ref_type, fmt, number, deadline)

    async def get_claims(
        self, ref_type: str, fmt: str, number: str, *, deadline: Optional[float] = None
    ) -> str:
        return await self._get_published(ENDPOINT_CLAIMS, ref_type, fmt, number, deadline)

    async def get_description(
        self, ref_type: str, fmt: str, number: str, *, deadline: Optional[float] = None
    ) -> str:
        return await self._get_published(ENDPOINT_DESCRIPTION, ref_type, fmt, number, deadline)

    async def get_fulltext(
        self, ref_type: str, fmt: str, number: str, *, deadline: Optional[float] = None
    ) -> str:
        """Fulltext inquiry: which fulltext constituents exist for the document."""
        return await self._get_published(ENDPOINT_FULLTEXT, ref_type, fmt, number, deadline)

    async def get_published_equivalents(
        self, ref_type: str, fmt: str, number: str, *, deadline: Optional[float] = None
    ) -> str:
        """Simple family members (equivalents) of a publication."""
        return await self._get_published("equivalents", ref_type, fmt, number, deadline)

    async def get_biblio_multiple(
        self, ref_type: str, fmt: str, numbers: Sequence[str], *, deadline: Optional[float] = None
    ) -> str:
        """
        Retrieve bibliographic data for up to 100 documents in one POST.

        Raises:
            ValidationError: No numbers, more than 100, or a malformed number
        """
        return await self._post_published(ENDPOINT_BIBLIO, ref_type, fmt, numbers, deadline)

    async def get_abstract_multiple(
        self, ref_type: str, fmt: str, numbers: Sequence[str], *, deadline: Optional[float] = None
    ) -> str:
        return await self._post_published(ENDPOINT_ABSTRACT, ref_type, fmt, numbers, deadline)

    async def get_claims_multiple(
        self, ref_type: str, fmt: str, numbers: Sequence[str], *, deadline: Optional[float] = None
    ) -> str:
        return await self._post_published(ENDPOINT_CLAIMS, ref_type, fmt, numbers, deadline)

    async def get_description_multiple(
        self, ref_type: str, fmt: str, numbers: Sequence[str], *, deadline: Optional[float] = None
    ) -> str:
        return await self._post_published(ENDPOINT_DESCRIPTION, ref_type, fmt, numbers, deadline)

    async def get_fulltext_multiple(
        self, ref_type: str, fmt: str, numbers: Sequence[str], *, deadline: Optional[float] = None
    ) -> str:
        return await self._post_published(ENDPOINT_FULLTEXT, ref_type, fmt, numbers, deadline)

    async def get_full_cycle_multiple(
        self, ref_type: str, fmt: str, numbers: Sequence[str], *, deadline: Optional[float] = None
    ) -> str:
        """Biblio for every publication stage of up to 100 documents."""
        return await self._post_published("full-cycle", ref_type, fmt, numbers, deadline)

    async def get_published_equivalents_multiple(
        self, ref_type: str, fmt: str, numbers: Sequence[str], *, deadline: Optional[float] = None
    ) -> str:
        return await self._post_published("equivalents", ref_type, fmt, numbers, deadline)

    # =========================================================================
    # Bulk retrieval (auto-batching over the *_multiple endpoints)
    # =========================================================================

    async def _bulk(
        self,
        constituent: str,
        ref_type: str,
        fmt: str,
        numbers: Sequence[str],
        options: Optional[BulkOptions],
    ) -> List[str]:
        validate_ref_type(ref_type)
        validate_choice(fmt, FORMATS, "format")
        for number in numbers:
            validate_format(fmt, number)

        async def fetch_batch(batch: List[str]) -> str:
            return await self._post_published(constituent, ref_type, fmt, batch, None)

        logger.info(
            f"Bulk {constituent} retrieval: {len(numbers)} numbers "
            f"({ref_type}/{fmt})"
        )
        return await execute_bulk(numbers, fetch_batch, options=options)

    async def get_biblios_bulk(
        self,
        ref_type: str,
        fmt: str,
        numbers: Sequence[str],
        options: Optional[BulkOptions] = None,
    ) -> List[str]:
        """
        Retrieve bibliographic data for any number of documents.

        Splits the numbers into batches of 100 and runs them sequentially.

        Returns:
            One XML body per batch, in input order

        Raises:
            ValidationError: Invalid reference type or number (before any request)
            BulkOperationError: A batch failed; earlier results are discarded
        """
        return await self._bulk(ENDPOINT_BIBLIO, ref_type, fmt, numbers, options)

    async def get_abstracts_bulk(
        self,
        ref_type: str,
        fmt: str,
        numbers: Sequence[str],
        options: Optional[BulkOptions] = None,
    ) -> List[str]:
        return await self._bulk(ENDPOINT_ABSTRACT, ref_type, fmt, numbers, options)

    async def get_claims_bulk(
        self,
        ref_type: str,
        fmt: str,
        numbers: Sequence[str],
        options: Optional[BulkOptions] = None,
    ) -> List[str]:
        return await self._bulk(ENDPOINT_CLAIMS, ref_type, fmt, numbers, options)

    async def get_descriptions_bulk(
        self,
        ref_type: str,
        fmt: str,
        numbers: Sequence[str],
        options: Optional[BulkOptions] = None,
    ) -> List[str]:
        return await self._bulk(ENDPOINT_DESCRIPTION, ref_type, fmt, numbers, options)

    async def get_fulltexts_bulk(
        self,
        ref_type: str,
        fmt: str,
        numbers: Sequence[str],
        options: Optional[BulkOptions] = None,
    ) -> List[str]:
        return await self._bulk(ENDPOINT_FULLTEXT, ref_type, fmt, numbers, options)

    # =========================================================================
    # Search
    # =========================================================================

    async def search(
        self,
        query: str,
        range_str: str = DEFAULT_SEARCH_RANGE,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        """
        Search published data with a CQL query.

        Args:
            query: CQL query (e.g. "ti=plastic and pa=basf")
            range_str: Result range, e.g. "1-25" (max 100 per page)
            deadline: Optional time budget in seconds
        """
        validate_not_empty(query, "query")
        return await self.get_text(
            "published-data/search",
            params={"q": query, "Range": range_str or DEFAULT_SEARCH_RANGE},
            deadline=deadline,
        )

    async def search_with_constituent(
        self,
        constituent: str,
        query: str,
        range_str: str = DEFAULT_SEARCH_RANGE,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        """Search and return the given constituent (biblio, abstract, full-cycle) per hit."""
        validate_choice(constituent, SEARCH_CONSTITUENTS, "constituent")
        validate_not_empty(query, "query")
        return await self.get_text(
            f"published-data/search/{constituent}",
            params={"q": query, "Range": range_str or DEFAULT_SEARCH_RANGE},
            deadline=deadline,
        )

    # =========================================================================
    # Family
    # =========================================================================

    async def get_family(
        self,
        ref_type: str,
        fmt: str,
        number: str,
        constituent: Optional[str] = None,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        """
        Retrieve the INPADOC family of a document.

        Args:
            constituent: None for the plain family, "biblio" or "legal" to
                include that data for each member
        """
        validate_ref_type(ref_type)
        validate_format(fmt, number)
        path = f"family/{ref_type}/{fmt}/{_segment(number)}"
        if constituent is not None:
            validate_choice(constituent, FAMILY_CONSTITUENTS, "constituent")
            path = f"{path}/{constituent}"
        return await self.get_text(path, deadline=deadline)

    async def get_family_multiple(
        self,
        ref_type: str,
        fmt: str,
        numbers: Sequence[str],
        constituent: str = "biblio",
        *,
        deadline: Optional[float] = None,
    ) -> str:
        validate_ref_type(ref_type)
        validate_choice(constituent, FAMILY_CONSTITUENTS, "constituent")
        validate_numbers(numbers, fmt)
        return await self.post_text(
            f"family/{ref_type}/{fmt}/{constituent}",
            format_bulk_body(numbers),
            deadline=deadline,
        )

    # =========================================================================
    # Legal
    # =========================================================================

    async def get_legal(
        self, ref_type: str, fmt: str, number: str, *, deadline: Optional[float] = None
    ) -> str:
        """Legal status events (INPADOC) for a document."""
        validate_ref_type(ref_type)
        validate_format(fmt, number)
        return await self.get_text(
            f"legal/{ref_type}/{fmt}/{_segment(number)}", deadline=deadline
        )

    async def get_legal_multiple(
        self, ref_type: str, fmt: str, numbers: Sequence[str], *, deadline: Optional[float] = None
    ) -> str:
        validate_ref_type(ref_type)
        validate_numbers(numbers, fmt)
        return await self.post_text(
            f"legal/{ref_type}/{fmt}", format_bulk_body(numbers), deadline=deadline
        )

    # =========================================================================
    # EP Register
    # =========================================================================

    # Register accepts docdb numbers and epodoc numbers without kind code
    # under the epodoc format, so numbers are only checked for emptiness.

    async def _get_register(
        self,
        constituent: str,
        ref_type: str,
        number: str,
        fmt: str,
        deadline: Optional[float],
    ) -> str:
        validate_ref_type(ref_type)
        validate_not_empty(number, "number")
        return await self.get_text(
            f"register/{ref_type}/{fmt}/{_segment(number)}/{constituent}",
            deadline=deadline,
        )

    async def _post_register(
        self,
        constituent: str,
        ref_type: str,
        numbers: Sequence[str],
        fmt: str,
        deadline: Optional[float],
    ) -> str:
        validate_ref_type(ref_type)
        validate_count(numbers)
        return await self.post_text(
            f"register/{ref_type}/{fmt}/{constituent}",
            format_bulk_body(numbers),
            deadline=deadline,
        )

    async def get_register_biblio(
        self,
        ref_type: str,
        number: str,
        fmt: str = FORMAT_EPODOC,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        """EP Register bibliographic data (more current than published-data biblio)."""
        return await self._get_register("biblio", ref_type, number, fmt, deadline)

    async def get_register_events(
        self,
        ref_type: str,
        number: str,
        fmt: str = FORMAT_EPODOC,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        return await self._get_register("events", ref_type, number, fmt, deadline)

    async def get_register_procedural_steps(
        self,
        ref_type: str,
        number: str,
        fmt: str = FORMAT_EPODOC,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        return await self._get_register("procedural-steps", ref_type, number, fmt, deadline)

    async def get_register_biblio_multiple(
        self,
        ref_type: str,
        numbers: Sequence[str],
        fmt: str = FORMAT_EPODOC,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        return await self._post_register("biblio", ref_type, numbers, fmt, deadline)

    async def get_register_events_multiple(
        self,
        ref_type: str,
        numbers: Sequence[str],
        fmt: str = FORMAT_EPODOC,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        return await self._post_register("events", ref_type, numbers, fmt, deadline)

    async def get_register_procedural_steps_multiple(
        self,
        ref_type: str,
        numbers: Sequence[str],
        fmt: str = FORMAT_EPODOC,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        return await self._post_register("procedural-steps", ref_type, numbers, fmt, deadline)

    async def get_register_unip(
        self, ref_type: str, number: str, *, deadline: Optional[float] = None
    ) -> str:
        """Unitary Patent Protection (UPP) data. Only epodoc numbers are accepted."""
        validate_choice(ref_type, UNIP_REF_TYPES, "ref_type")
        return await self._get_register("upp", ref_type, number, FORMAT_EPODOC, deadline)

    async def get_register_unip_multiple(
        self,
        ref_type: str,
        numbers: Sequence[str],
        *,
        deadline: Optional[float] = None,
    ) -> str:
        validate_choice(ref_type, UNIP_REF_TYPES, "ref_type")
        return await self._post_register("upp", ref_type, numbers, FORMAT_EPODOC, deadline)

    async def search_register(
        self,
        query: str,
        range_str: str = DEFAULT_SEARCH_RANGE,
        constituent: Optional[str] = None,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        """
        Search the EP Register.

        Args:
            query: CQL query (e.g. "ti=battery and pa=tesla")
            range_str: Result range
            constituent: Optional biblio, events, procedural-steps or upp
        """
        validate_not_empty(query, "query")
        path = "register/search"
        if constituent is not None:
            validate_choice(constituent, REGISTER_SEARCH_CONSTITUENTS, "constituent")
            path = f"{path}/{constituent}"
        return await self.get_text(
            path,
            params={"q": query, "Range": range_str or DEFAULT_SEARCH_RANGE},
            deadline=deadline,
        )

    # =========================================================================
    # Images
    # =========================================================================

    async def get_image(
        self,
        country: str,
        number: str,
        kind: str,
        image_type: str,
        page: int = 1,
        *,
        deadline: Optional[float] = None,
    ) -> bytes:
        """
        Download one page of a document image.

        Args:
            country: Two-letter country code (e.g. "EP")
            number: Number without country code (e.g. "2400812")
            kind: Kind code (e.g. "A1")
            image_type: "fullimage", "thumbnail" or "firstpage"
            page: 1-based page number

        Returns:
            Raw image bytes (typically TIFF)
        """
        validate_not_empty(country, "country")
        validate_not_empty(number, "number")
        validate_not_empty(kind, "kind")
        validate_choice(image_type, IMAGE_TYPES, "image_type")
        if page < 1:
            raise ValidationError("page must be >= 1", field="page", value=str(page))
        return await self.get_binary(
            f"published-data/images/{_segment(country)}/{_segment(number)}/"
            f"{_segment(kind)}/{image_type}",
            params={"Range": page},
            deadline=deadline,
        )

    async def get_image_inquiry(
        self, ref_type: str, fmt: str, number: str, *, deadline: Optional[float] = None
    ) -> str:
        """List the image documents (and their page counts) available for a publication."""
        return await self._get_published("images", ref_type, fmt, number, deadline)

    async def get_image_post(
        self, identifier: str, page: int = 1, *, deadline: Optional[float] = None
    ) -> bytes:
        """
        Download one page of a document image by its inquiry link.

        Args:
            identifier: Link from the image inquiry (e.g. "EP/1000000/A1/fullimage")
            page: 1-based page number
        """
        validate_not_empty(identifier, "identifier")
        if page < 1:
            raise ValidationError("page must be >= 1", field="page", value=str(page))
        return await self.post_binary(
            "published-data/images",
            identifier,
            params={"Range": page},
            deadline=deadline,
        )

    # =========================================================================
    # Number service
    # =========================================================================

    async def convert_patent_number(
        self,
        ref_type: str,
        input_fmt: str,
        number: str,
        output_fmt: str,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        """
        Convert a number between formats (e.g. original -> docdb).

        The input number is not format-checked, since converting malformed
        original numbers is the point of the service.
        """
        validate_ref_type(ref_type)
        validate_choice(input_fmt, FORMATS, "input_format")
        validate_choice(output_fmt, FORMATS, "output_format")
        validate_not_empty(number, "number")
        return await self.get_text(
            f"number-service/{ref_type}/{input_fmt}/{_segment(number)}/{output_fmt}",
            deadline=deadline,
        )

    async def convert_patent_number_multiple(
        self,
        ref_type: str,
        input_fmt: str,
        numbers: Sequence[str],
        output_fmt: str,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        validate_ref_type(ref_type)
        validate_choice(input_fmt, FORMATS, "input_format")
        validate_choice(output_fmt, FORMATS, "output_format")
        validate_count(numbers)
        return await self.post_text(
            f"number-service/{ref_type}/{input_fmt}/{output_fmt}",
            format_bulk_body(numbers),
            deadline=deadline,
        )

    # =========================================================================
    # Classification
    # =========================================================================

    async def get_classification_schema(
        self,
        symbol: str,
        ancestors: bool = False,
        navigation: bool = False,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        """
        CPC classification schema for a symbol (e.g. "A01B" or "H04W84/18").

        Args:
            ancestors: Include ancestor classes
            navigation: Include navigation links to related classes
        """
        validate_not_empty(symbol, "symbol")
        params: Dict[str, Any] = {}
        if ancestors:
            params["ancestors"] = "true"
        if navigation:
            params["navigation"] = "true"
        return await self.get_text(
            f"classification/cpc/{symbol}", params=params or None, deadline=deadline
        )

    async def get_classification_schema_subclass(
        self,
        cls: str,
        subclass: str,
        ancestors: bool = False,
        navigation: bool = False,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        """CPC schema for a class/subclass pair (e.g. "A01B1", "00")."""
        validate_not_empty(cls, "class")
        validate_not_empty(subclass, "subclass")
        params: Dict[str, Any] = {}
        if ancestors:
            params["ancestors"] = "true"
        if navigation:
            params["navigation"] = "true"
        return await self.get_text(
            f"classification/cpc/{_segment(cls)}/{_segment(subclass)}",
            params=params or None,
            deadline=deadline,
        )

    async def get_classification_schema_multiple(
        self, symbols: Sequence[str], *, deadline: Optional[float] = None
    ) -> str:
        validate_count(symbols)
        return await self.post_text(
            "classification/cpc", format_bulk_body(symbols), deadline=deadline
        )

    async def get_classification_media(
        self,
        media_name: str,
        as_attachment: bool = False,
        *,
        deadline: Optional[float] = None,
    ) -> bytes:
        """
        Download a CPC illustration referenced from the schema (e.g. "1000.gif").

        Returns:
            Raw media bytes
        """
        validate_not_empty(media_name, "media_name")
        params = {"attachment": "true"} if as_attachment else None
        return await self.get_binary(
            f"classification/cpc/media/{_segment(media_name)}",
            params=params,
            deadline=deadline,
        )

    async def get_classification_statistics(
        self, query: str, *, deadline: Optional[float] = None
    ) -> str:
        """Publication counts per CPC class for a keyword query (e.g. "plastic")."""
        validate_not_empty(query, "query")
        return await self.get_text(
            "classification/cpc/search", params={"q": query}, deadline=deadline
        )

    async def get_classification_mapping(
        self,
        input_fmt: str,
        cls: str,
        subclass: str,
        output_fmt: str,
        additional: bool = False,
        *,
        deadline: Optional[float] = None,
    ) -> str:
        """
        Map a classification between CPC and ECLA.

        Example: ("ecla", "A01D2085", "8", "cpc")
        """
        validate_choice(input_fmt, CLASSIFICATION_FORMATS, "input_format")
        validate_choice(output_fmt, CLASSIFICATION_FORMATS, "output_format")
        validate_not_empty(cls, "class")
        validate_not_empty(subclass, "subclass")
        params = {"additional": "true"} if additional else None
        return await self.get_text(
            f"classification/map/{input_fmt}/{_segment(cls)}/{_segment(subclass)}/{output_fmt}",
            params=params,
            deadline=deadline,
        )

    # =========================================================================
    # Usage statistics
    # =========================================================================

    async def get_usage_stats(
        self, time_range: str, *, deadline: Optional[float] = None
    ) -> UsageStats:
        """
        Usage statistics from the developer API.

        Args:
            time_range: "dd/mm/yyyy" or "dd/mm/yyyy~dd/mm/yyyy"

        Returns:
            UsageStats with one entry per reported data point
        """
        validate_time_range(time_range)
        body = await self.execute_text(
            self.request_builder(
                "GET",
                f"{self.developers_url}/me/stats/usage",
                params={"timeRange": time_range},
                headers={"Accept": "application/json"},
            ),
            deadline=deadline,
            resource_id="usage stats",
        )
        return parse_usage_stats(body, time_range)

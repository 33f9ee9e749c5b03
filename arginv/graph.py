"""
Azure Resource Graph backend.

Executes one page of a KQL query across a set of subscriptions and returns
the rows as plain dictionaries (objectArray result format).
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from azure.core.exceptions import HttpResponseError
from azure.identity import DefaultAzureCredential
from azure.mgmt.resourcegraph import ResourceGraphClient
from azure.mgmt.resourcegraph.models import QueryRequest, QueryRequestOptions, ResultFormat

from .constants import GRAPH_MAX_RESPONSE_ROWS, THROTTLE_RETRY_ATTEMPTS, THROTTLE_STATUS_CODE
from .exceptions import AuthError, SetupError
from .utils import check_and_raise_auth_error, retry_with_backoff

logger = logging.getLogger(__name__)

PREFLIGHT_QUERY = "Resources | project id | limit 1"


def get_credential():
    """
    Get Azure credential.

    In Cloud Shell this resolves to managed identity; locally it picks up
    environment, workload identity, or Azure CLI login.

    Raises:
        SetupError: If no credential can be constructed
    """
    try:
        return DefaultAzureCredential()
    except Exception as e:
        raise SetupError("Failed to create Azure credential", cause=e) from e


def is_throttling_error(exc: BaseException) -> bool:
    """True for Resource Graph 429 responses."""
    return isinstance(exc, HttpResponseError) and getattr(exc, 'status_code', None) == THROTTLE_STATUS_CODE


class ResourceGraphBackend:
    """
    Page-at-a-time access to Azure Resource Graph.

    A single Resource Graph response carries at most 1000 rows. When a
    caller asks for a larger page, the remainder is fetched by following
    the response skip token, so a page shorter than requested always means
    the result set is exhausted.
    """

    def __init__(self, credential=None, client: Optional[ResourceGraphClient] = None):
        if client is None:
            if credential is None:
                raise SetupError("ResourceGraphBackend needs a credential or a client")
            client = ResourceGraphClient(credential)
        self.client = client

    @retry_with_backoff(
        max_attempts=THROTTLE_RETRY_ATTEMPTS,
        min_wait=2,
        max_wait=30,
        exceptions=(HttpResponseError,),
        retry_if=is_throttling_error,
    )
    def _request(self, request: QueryRequest):
        return self.client.resources(request)

    def _query(
        self,
        query: str,
        scopes: Sequence[str],
        top: int,
        skip: Optional[int] = None,
        skip_token: Optional[str] = None,
    ):
        option_args: Dict[str, Any] = {'top': top, 'result_format': ResultFormat.OBJECT_ARRAY}
        # skip and skip_token are mutually exclusive
        if skip_token:
            option_args['skip_token'] = skip_token
        elif skip:
            option_args['skip'] = skip
        options = QueryRequestOptions(**option_args)

        request = QueryRequest(subscriptions=list(scopes), query=query, options=options)
        try:
            return self._request(request)
        except Exception as e:
            check_and_raise_auth_error(e, "query Resource Graph")
            raise

    def run_page(
        self,
        query: str,
        scopes: Sequence[str],
        offset: int,
        limit: int,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Fetch up to `limit` rows starting at `offset`.

        Returns:
            (rows, row_count) for the page
        """
        rows: List[Dict[str, Any]] = []
        response = self._query(query, scopes, top=min(limit, GRAPH_MAX_RESPONSE_ROWS), skip=offset)
        rows.extend(response.data or [])

        while len(rows) < limit and response.skip_token:
            remaining = limit - len(rows)
            response = self._query(
                query,
                scopes,
                top=min(remaining, GRAPH_MAX_RESPONSE_ROWS),
                skip_token=response.skip_token,
            )
            data = response.data or []
            if not data:
                break
            rows.extend(data)

        return rows, len(rows)


def verify_access(backend: ResourceGraphBackend, scopes: Sequence[str]) -> Dict[str, Any]:
    """
    Check Resource Graph access before starting the run.

    Auth failures raise AuthError; any other failure is returned as a
    warning so the run can still proceed (bad scopes then surface as
    per-query errors).

    Returns dict with a 'warnings' list.
    """
    results: Dict[str, Any] = {'warnings': []}

    try:
        backend.run_page(PREFLIGHT_QUERY, scopes, 0, 1)
    except AuthError:
        raise
    except Exception as e:
        results['warnings'].append(f"Resource Graph check failed (queries may fail): {e}")

    return results

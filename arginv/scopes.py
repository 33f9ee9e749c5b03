"""
Subscription scope resolution.
"""
import logging
from typing import Dict, Iterable, List, Optional

from azure.mgmt.subscription import SubscriptionClient

from .constants import SUBSCRIPTION_STATE_ENABLED
from .exceptions import ScopeResolutionError
from .utils import check_and_raise_auth_error

logger = logging.getLogger(__name__)


def get_subscriptions(credential) -> List[Dict]:
    """Get all accessible subscriptions."""
    subscription_client = SubscriptionClient(credential)
    subscriptions = []

    for sub in subscription_client.subscriptions.list():
        subscriptions.append({
            'id': sub.subscription_id,
            'name': sub.display_name,
            'state': sub.state
        })

    return subscriptions


def _dedupe(values: Iterable[Optional[str]]) -> List[str]:
    """Strip, drop blanks and remove duplicates, keeping first occurrence."""
    seen = set()
    result = []
    for value in values:
        value = (value or '').strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def resolve_scopes(credential, explicit: Optional[Iterable[str]] = None) -> List[str]:
    """
    Resolve the ordered, deduplicated list of subscriptions to query.

    An explicit list is used as given; nothing checks that the
    subscriptions exist. Otherwise every enabled subscription visible to
    the credential is returned.

    Raises:
        AuthError: If listing subscriptions fails for auth reasons
        ScopeResolutionError: If subscriptions cannot be listed, or none remain
    """
    scopes = _dedupe(explicit or [])
    if scopes:
        logger.info(f"Using {len(scopes)} explicit subscription(s)")
        return scopes

    try:
        subscriptions = get_subscriptions(credential)
    except Exception as e:
        check_and_raise_auth_error(e, "list subscriptions")
        raise ScopeResolutionError("Failed to list Azure subscriptions", cause=e) from e

    enabled = [s for s in subscriptions if s['state'] == SUBSCRIPTION_STATE_ENABLED]
    skipped = len(subscriptions) - len(enabled)
    if skipped:
        logger.info(f"Skipping {skipped} subscription(s) that are not enabled")

    scopes = _dedupe(s['id'] for s in enabled)
    if not scopes:
        raise ScopeResolutionError("No enabled Azure subscriptions found. Check permissions.")

    logger.info(f"Found {len(scopes)} subscription(s) to query")
    return scopes

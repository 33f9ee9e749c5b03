"""
Tests for arginv/scopes.py subscription resolution.

Covers:
- Explicit subscriptions used verbatim (deduplicated, order kept)
- Discovery of enabled subscriptions
- Empty scope sets and listing failures
- Auth failures while listing
"""
import os
import sys
from unittest.mock import Mock, patch

import pytest
from azure.core.exceptions import ClientAuthenticationError, HttpResponseError

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from arginv.exceptions import AuthError, ScopeResolutionError
from arginv.scopes import get_subscriptions, resolve_scopes


@pytest.fixture
def mock_credential():
    """Create a mock Azure credential."""
    return Mock()


def create_mock_subscription(subscription_id: str, name: str = "", state: str = "Enabled"):
    """Create a mock Azure subscription object."""
    sub = Mock()
    sub.subscription_id = subscription_id
    sub.display_name = name or f"sub-{subscription_id}"
    sub.state = state
    return sub


class TestExplicitScopes:
    """Tests for explicitly configured subscriptions."""

    def test_explicit_used_verbatim(self, mock_credential):
        with patch('arginv.scopes.SubscriptionClient') as mock_client_class:
            scopes = resolve_scopes(mock_credential, ["sub-A", "sub-B"])

        assert scopes == ["sub-A", "sub-B"]
        mock_client_class.assert_not_called()

    def test_explicit_deduplicated_in_order(self, mock_credential):
        scopes = resolve_scopes(mock_credential, ["sub-B", " sub-A ", "sub-B", "", "sub-A"])
        assert scopes == ["sub-B", "sub-A"]

    def test_blank_explicit_falls_back_to_discovery(self, mock_credential):
        with patch('arginv.scopes.SubscriptionClient') as mock_client_class:
            mock_client_class.return_value.subscriptions.list.return_value = [
                create_mock_subscription("sub-X"),
            ]
            scopes = resolve_scopes(mock_credential, ["", "  "])

        assert scopes == ["sub-X"]


class TestDiscovery:
    """Tests for listing subscriptions from the tenant."""

    def test_get_subscriptions(self, mock_credential):
        with patch('arginv.scopes.SubscriptionClient') as mock_client_class:
            mock_client_class.return_value.subscriptions.list.return_value = [
                create_mock_subscription("sub-1", "Production"),
                create_mock_subscription("sub-2", "Dev", state="Disabled"),
            ]
            subs = get_subscriptions(mock_credential)

        assert subs == [
            {'id': 'sub-1', 'name': 'Production', 'state': 'Enabled'},
            {'id': 'sub-2', 'name': 'Dev', 'state': 'Disabled'},
        ]

    def test_only_enabled_subscriptions(self, mock_credential):
        with patch('arginv.scopes.SubscriptionClient') as mock_client_class:
            mock_client_class.return_value.subscriptions.list.return_value = [
                create_mock_subscription("sub-1"),
                create_mock_subscription("sub-2", state="Disabled"),
                create_mock_subscription("sub-3", state="Warned"),
                create_mock_subscription("sub-4"),
            ]
            scopes = resolve_scopes(mock_credential)

        assert scopes == ["sub-1", "sub-4"]

    def test_no_enabled_subscriptions(self, mock_credential):
        with patch('arginv.scopes.SubscriptionClient') as mock_client_class:
            mock_client_class.return_value.subscriptions.list.return_value = [
                create_mock_subscription("sub-1", state="Disabled"),
            ]
            with pytest.raises(ScopeResolutionError):
                resolve_scopes(mock_credential)

    def test_no_subscriptions_at_all(self, mock_credential):
        with patch('arginv.scopes.SubscriptionClient') as mock_client_class:
            mock_client_class.return_value.subscriptions.list.return_value = []
            with pytest.raises(ScopeResolutionError):
                resolve_scopes(mock_credential, [])

    def test_listing_failure(self, mock_credential):
        with patch('arginv.scopes.SubscriptionClient') as mock_client_class:
            mock_client_class.return_value.subscriptions.list.side_effect = HttpResponseError(
                message="Service unavailable"
            )
            with pytest.raises(ScopeResolutionError) as exc_info:
                resolve_scopes(mock_credential)

        assert isinstance(exc_info.value.cause, HttpResponseError)

    def test_listing_auth_failure(self, mock_credential):
        with patch('arginv.scopes.SubscriptionClient') as mock_client_class:
            mock_client_class.return_value.subscriptions.list.side_effect = ClientAuthenticationError(
                message="token expired"
            )
            with pytest.raises(AuthError) as exc_info:
                resolve_scopes(mock_credential)

        assert exc_info.value.provider == "azure"

"""Tests for GeoLocationResolver."""
import pytest
import requests
from unittest.mock import Mock


class TestGeoLocationResolver:
    """Test suite for GeoLocationResolver."""

    @pytest.fixture
    def mock_http(self):
        return Mock()

    @pytest.fixture
    def resolver(self, mock_http):
        from src.services.geolocation import GeoLocationResolver

        return GeoLocationResolver(
            lookup_url="https://geo.example/json/{ip}", timeout=1.5, session=mock_http
        )

    def test_resolves_public_address(self, resolver, mock_http):
        # Arrange
        response = Mock()
        response.json.return_value = {"country": "DE", "regionName": "Berlin", "city": "Berlin"}
        mock_http.get.return_value = response

        # Act
        location = resolver.resolve("8.8.8.8")

        # Assert
        mock_http.get.assert_called_once_with("https://geo.example/json/8.8.8.8", timeout=1.5)
        assert location.country == "DE"
        assert location.region == "Berlin"
        assert location.as_key() == "DE:Berlin:Berlin"

    def test_private_address_not_looked_up(self, resolver, mock_http):
        location = resolver.resolve("192.168.1.10")

        assert location.is_empty
        mock_http.get.assert_not_called()

    def test_malformed_address_is_empty(self, resolver, mock_http):
        location = resolver.resolve("not-an-ip")

        assert location.is_empty
        mock_http.get.assert_not_called()

    def test_http_error_yields_empty_location(self, resolver, mock_http):
        # Arrange
        mock_http.get.side_effect = requests.ConnectionError("unreachable")

        # Act
        location = resolver.resolve("8.8.8.8")

        # Assert
        assert location.is_empty

    def test_failed_lookup_status(self, resolver, mock_http):
        # Arrange
        response = Mock()
        response.json.return_value = {"status": "fail", "message": "reserved range"}
        mock_http.get.return_value = response

        # Act
        location = resolver.resolve("8.8.4.4")

        # Assert
        assert location.is_empty

    def test_disabled_without_lookup_url(self, mock_http):
        from src.services.geolocation import GeoLocationResolver

        resolver = GeoLocationResolver(lookup_url="", session=mock_http)

        assert resolver.enabled is False
        assert resolver.resolve("8.8.8.8").is_empty
        mock_http.get.assert_not_called()


class TestLocation:
    """Tests for the Location value type."""

    def test_key_drops_missing_parts(self):
        from src.services.geolocation import Location

        assert Location(country="FR", city="Paris").as_key() == "FR:Paris"
        assert Location().as_key() is None

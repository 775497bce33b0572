"""
Tests for resource group resolution
"""

from sentinel_deploy.resource_group import DEFAULT_LOCATION, ResourceGroupResolver

from conftest import group_document


class TestResourceGroupResolver:
    """Tests for ResourceGroupResolver.ensure."""

    def test_existing_group_is_reused(self, azure_cli, fake_az):
        fake_az.add("group", "exists", stdout="true")
        fake_az.add("group", "show", output=group_document(location="westeurope"))

        group = ResourceGroupResolver(azure_cli).ensure("rg-secops-prod", location="westeurope")

        assert group.existed is True
        assert group.location == "westeurope"
        assert group.requested_location is None
        assert not any(call[1:3] == ["group", "create"] for call in fake_az.calls)

    def test_existing_group_location_wins(self, azure_cli, fake_az, caplog):
        fake_az.add("group", "exists", stdout="true")
        fake_az.add("group", "show", output=group_document(location="westeurope"))

        group = ResourceGroupResolver(azure_cli).ensure("rg-secops-prod", location="East US")

        assert group.location == "westeurope"
        assert group.requested_location == "East US"
        assert "ignoring requested location" in caplog.text

    def test_same_location_in_display_form(self, azure_cli, fake_az):
        fake_az.add("group", "exists", stdout="true")
        fake_az.add("group", "show", output=group_document(location="westeurope"))

        group = ResourceGroupResolver(azure_cli).ensure("rg-secops-prod", location="West Europe")

        assert group.requested_location is None

    def test_missing_group_is_created(self, azure_cli, fake_az):
        fake_az.add("group", "exists", stdout="false")
        fake_az.add("group", "create", output=group_document(location="uksouth"))

        group = ResourceGroupResolver(azure_cli).ensure(
            "rg-secops-prod",
            location="UK South",
            tags={"owner": "secops"},
        )

        assert group.existed is False
        assert group.location == "uksouth"
        create_args = fake_az.args_of(1)
        assert create_args[:6] == ["group", "create", "--name", "rg-secops-prod", "--location", "uksouth"]
        assert create_args[6:8] == ["--tags", "owner=secops"]

    def test_missing_group_falls_back_to_default_location(self, azure_cli, fake_az):
        fake_az.add("group", "exists", stdout="false")
        fake_az.add("group", "create", output=group_document(location=DEFAULT_LOCATION))

        group = ResourceGroupResolver(azure_cli).ensure("rg-secops-prod")

        assert group.location == DEFAULT_LOCATION
        assert fake_az.args_of(1)[5] == DEFAULT_LOCATION

    def test_missing_group_not_created_when_disabled(self, azure_cli, fake_az):
        fake_az.add("group", "exists", stdout="false")

        group = ResourceGroupResolver(azure_cli).ensure("rg-secops-prod", location="uksouth", create=False)

        assert group.existed is False
        assert group.location == "uksouth"
        assert group.id is None
        assert len(fake_az.calls) == 1

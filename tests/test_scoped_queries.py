"""
Tests for the organisation-scoped query helpers.

get_scoped() must:
    - refuse unscoped lookups
    - refuse scope fields the model does not have
    - treat a record from another scope exactly like a missing one
"""

import pytest

from app.core.exceptions import NotFoundError
from app.models import db
from app.models.health_check import CheckResult
from app.models.repair import RepairItem, RepairOption
from app.services.helpers.scoped_queries import get_scoped, get_scoped_or_none


@pytest.fixture()
def item(org, health_check):
    row = RepairItem(organization_id=org.id, health_check_id=health_check.id, name="Pads")
    db.session.add(row)
    db.session.commit()
    return row


class TestGetScoped:
    def test_returns_record_in_scope(self, org, item):
        assert get_scoped(RepairItem, item.id, organization_id=org.id) is item

    def test_other_organisation_is_not_found(self, other_org, item):
        with pytest.raises(NotFoundError):
            get_scoped(RepairItem, item.id, organization_id=other_org.id)

    def test_missing_record_is_not_found(self, org):
        with pytest.raises(NotFoundError):
            get_scoped(RepairItem, 99999, organization_id=org.id)

    def test_unscoped_lookup_is_refused(self, item):
        with pytest.raises(ValueError, match="requires at least one scope filter"):
            get_scoped(RepairItem, item.id)

    def test_unknown_scope_column_is_refused(self, health_check, findings):
        with pytest.raises(ValueError, match="do not exist as columns") as exc:
            get_scoped(CheckResult, findings[0].id, organization_id=health_check.organization_id)
        assert "CheckResult" in str(exc.value)

    def test_parent_scope(self, health_check, findings, other_org, health_check_factory):
        assert get_scoped(CheckResult, findings[0].id,
                          health_check_id=health_check.id) is findings[0]

        foreign_hc = health_check_factory(other_org.id, [("Exhaust", "red")])
        with pytest.raises(NotFoundError):
            get_scoped(CheckResult, findings[0].id, health_check_id=foreign_hc.id)

    def test_child_scoped_by_owning_item(self, item):
        option = RepairOption(repair_item_id=item.id, name="Standard")
        db.session.add(option)
        db.session.commit()

        assert get_scoped(RepairOption, option.id, repair_item_id=item.id) is option
        with pytest.raises(NotFoundError):
            get_scoped(RepairOption, option.id, repair_item_id=item.id + 1)

    def test_for_update_still_filters(self, org, other_org, item):
        assert get_scoped(RepairItem, item.id, organization_id=org.id, for_update=True) is item
        with pytest.raises(NotFoundError):
            get_scoped(RepairItem, item.id, organization_id=other_org.id, for_update=True)


class TestGetScopedOrNone:
    def test_returns_none_outside_scope(self, other_org, item):
        assert get_scoped_or_none(RepairItem, item.id, organization_id=other_org.id) is None

    def test_still_requires_scope(self, item):
        with pytest.raises(ValueError):
            get_scoped_or_none(RepairItem, item.id)

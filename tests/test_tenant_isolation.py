"""
Organisation isolation — every id from another organisation behaves like a
missing id (404), for reads, writes and child rows reached through their
owning repair item.
"""

import pytest

from app.models import db
from app.models.catalog import LabourCode
from app.models.repair import RepairItem

BASE = "/api/v1"


@pytest.fixture()
def foreign(other_org, health_check_factory, auth_headers, client):
    """A repair item with an option, labour and parts owned by ``other_org``."""
    hc = health_check_factory(other_org.id, [("Exhaust", "red")])
    code = LabourCode(organization_id=other_org.id, code="LAB", hourly_rate=60)
    db.session.add(code)
    db.session.commit()

    rival = auth_headers(other_org.id, user_id=99)
    item = client.post(f"{BASE}/health-checks/{hc.id}/repair-items",
                       json={"name": "Exhaust"}, headers=rival).get_json()
    option = client.post(f"{BASE}/repair-items/{item['id']}/options",
                         json={"name": "Budget"}, headers=rival).get_json()
    labour = client.post(f"{BASE}/repair-options/{option['id']}/labour",
                         json={"labourCodeId": code.id, "hours": 1}, headers=rival).get_json()
    part = client.post(f"{BASE}/repair-items/{item['id']}/parts",
                       json={"description": "Box", "costPrice": 1, "sellPrice": 2},
                       headers=rival).get_json()
    return {"hc": hc, "item": item, "option": option, "labour": labour, "part": part,
            "code": code}


class TestCrossOrganisationReads:
    def test_health_check_endpoints(self, client, foreign, headers):
        hc_id = foreign["hc"].id
        for path in ("repair-items", "unassigned-check-results", "workflow-status",
                     "can-complete"):
            rv = client.get(f"{BASE}/health-checks/{hc_id}/{path}", headers=headers)
            assert rv.status_code == 404, path

    def test_item_and_children(self, client, foreign, headers):
        item_id = foreign["item"]["id"]
        option_id = foreign["option"]["id"]
        for path in (f"repair-items/{item_id}", f"repair-items/{item_id}/options",
                     f"repair-items/{item_id}/labour", f"repair-options/{option_id}/labour",
                     f"repair-options/{option_id}/parts"):
            assert client.get(f"{BASE}/{path}", headers=headers).status_code == 404, path


class TestCrossOrganisationWrites:
    @pytest.mark.parametrize("action,body", [
        ("authorise", {}),
        ("reset", {}),
        ("labour-complete", {}),
        ("no-parts-required", {}),
        ("ungroup", {}),
        ("options", {"name": "Sneaky"}),
    ])
    def test_item_actions_are_404(self, client, foreign, headers, action, body):
        rv = client.post(f"{BASE}/repair-items/{foreign['item']['id']}/{action}",
                         json=body, headers=headers)
        assert rv.status_code == 404
        assert db.session.get(RepairItem, foreign["item"]["id"]).outcome_status is None

    def test_patch_and_delete_are_404(self, client, foreign, headers):
        item_id = foreign["item"]["id"]
        assert client.patch(f"{BASE}/repair-items/{item_id}", json={"name": "Mine"},
                            headers=headers).status_code == 404
        assert client.delete(f"{BASE}/repair-items/{item_id}",
                             headers=headers).status_code == 404
        assert db.session.get(RepairItem, item_id).name == "Exhaust"

    def test_lines_are_404(self, client, foreign, headers):
        assert client.patch(f"{BASE}/repair-labour/{foreign['labour']['id']}",
                            json={"hours": 9}, headers=headers).status_code == 404
        assert client.delete(f"{BASE}/repair-parts/{foreign['part']['id']}",
                             headers=headers).status_code == 404
        assert client.patch(f"{BASE}/repair-options/{foreign['option']['id']}",
                            json={"name": "x"}, headers=headers).status_code == 404

    def test_foreign_labour_code_is_404(self, client, create_item, foreign, headers):
        item = create_item("Own")
        rv = client.post(f"{BASE}/repair-items/{item['id']}/labour",
                         json={"labourCodeId": foreign["code"].id, "hours": 1},
                         headers=headers)
        assert rv.status_code == 404

    def test_create_on_foreign_health_check_is_404(self, client, foreign, headers):
        rv = client.post(f"{BASE}/health-checks/{foreign['hc'].id}/repair-items",
                         json={"name": "Sneaky"}, headers=headers)
        assert rv.status_code == 404

    def test_foreign_check_result_cannot_be_linked(self, client, create_item, foreign,
                                                   headers):
        item = create_item("Own")
        foreign_cr = foreign["hc"].check_results.first()
        rv = client.post(f"{BASE}/repair-items/{item['id']}/check-results",
                         json={"checkResultId": foreign_cr.id}, headers=headers)
        assert rv.status_code == 400

"""
Repair item store, check-result links and pricing endpoints.

Categories:
  1. Create / read / update / soft delete
  2. Check-result links and unassigned findings
  3. Labour / parts lines and totals
  4. Options and option selection
"""

from decimal import Decimal

from app.models import db
from app.models.audit import AuditLog
from app.models.repair import RepairItem, RepairLabour

BASE = "/api/v1"


# ═════════════════════════════════════════════════════════════════════════════
# 1. CRUD
# ═════════════════════════════════════════════════════════════════════════════


class TestRepairItemCrud:
    def test_create_links_findings(self, create_item, findings):
        item = create_item("Front brakes", [findings[0].id, findings[3].id])

        assert item["isGroup"] is False
        assert item["outcomeStatus"] == "incomplete"
        assert item["labourStatus"] == "pending"
        assert sorted(cr["id"] for cr in item["checkResults"]) == sorted(
            [findings[0].id, findings[3].id]
        )

    def test_create_requires_name(self, client, health_check, headers):
        rv = client.post(f"{BASE}/health-checks/{health_check.id}/repair-items",
                         json={"name": "  "}, headers=headers)
        assert rv.status_code == 400
        assert rv.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_create_rejects_finding_of_other_health_check(
        self, client, org, health_check, health_check_factory, headers,
    ):
        other_hc = health_check_factory(org.id, [("Exhaust", "red")])
        foreign_cr = other_hc.check_results.first()
        rv = client.post(f"{BASE}/health-checks/{health_check.id}/repair-items",
                         json={"name": "Exhaust", "checkResultIds": [foreign_cr.id]},
                         headers=headers)
        assert rv.status_code == 400
        assert rv.get_json()["details"]["checkResultIds"] == [foreign_cr.id]

    def test_create_rejects_already_owned_finding(self, client, create_item, health_check,
                                                  findings, headers):
        create_item("Pads", [findings[0].id])
        rv = client.post(f"{BASE}/health-checks/{health_check.id}/repair-items",
                         json={"name": "Pads again", "checkResultIds": [findings[0].id]},
                         headers=headers)
        assert rv.status_code == 409

    def test_list_returns_top_level_items(self, client, create_item, health_check, headers):
        create_item("One")
        create_item("Two")
        rv = client.get(f"{BASE}/health-checks/{health_check.id}/repair-items", headers=headers)
        assert rv.status_code == 200
        body = rv.get_json()
        assert body["total"] == 2
        assert [i["name"] for i in body["repairItems"]] == ["One", "Two"]

    def test_get_single_item(self, client, create_item, headers):
        item = create_item("Tyres")
        rv = client.get(f"{BASE}/repair-items/{item['id']}", headers=headers)
        assert rv.status_code == 200
        assert rv.get_json()["name"] == "Tyres"

    def test_get_missing_item_returns_404(self, client, headers):
        rv = client.get(f"{BASE}/repair-items/99999", headers=headers)
        assert rv.status_code == 404
        assert rv.get_json()["code"] == "ERR_NOT_FOUND"

    def test_patch_updates_fields_and_audits(self, client, create_item, headers):
        item = create_item("Tyres")
        rv = client.patch(f"{BASE}/repair-items/{item['id']}",
                          json={"name": "Rear tyres", "priceOverride": "99.999"},
                          headers=headers)
        assert rv.status_code == 200
        body = rv.get_json()
        assert body["name"] == "Rear tyres"
        assert body["priceOverride"] == 100.0
        assert AuditLog.query.filter_by(entity_id=str(item["id"]), action="update").count() == 1

    def test_patch_rejects_empty_name(self, client, create_item, headers):
        item = create_item("Tyres")
        rv = client.patch(f"{BASE}/repair-items/{item['id']}", json={"name": ""}, headers=headers)
        assert rv.status_code == 400

    def test_delete_is_soft(self, client, create_item, health_check, headers):
        item = create_item("Tyres")
        rv = client.delete(f"{BASE}/repair-items/{item['id']}", headers=headers)
        assert rv.status_code == 200

        row = db.session.get(RepairItem, item["id"])
        assert row is not None and row.deleted_at is not None

        listed = client.get(f"{BASE}/health-checks/{health_check.id}/repair-items",
                            headers=headers).get_json()
        assert listed["total"] == 0
        with_deleted = client.get(
            f"{BASE}/health-checks/{health_check.id}/repair-items?include_deleted=true",
            headers=headers,
        ).get_json()
        assert with_deleted["total"] == 1

    def test_delete_twice_conflicts(self, client, create_item, headers):
        item = create_item("Tyres")
        client.delete(f"{BASE}/repair-items/{item['id']}", headers=headers)
        rv = client.delete(f"{BASE}/repair-items/{item['id']}", headers=headers)
        assert rv.status_code == 409

    def test_authorised_item_cannot_be_deleted(self, client, create_item, headers):
        item = create_item("Tyres")
        client.post(f"{BASE}/repair-items/{item['id']}/authorise", json={}, headers=headers)
        rv = client.delete(f"{BASE}/repair-items/{item['id']}", headers=headers)
        assert rv.status_code == 409

    def test_legacy_approved_item_cannot_be_deleted(self, client, create_item, headers):
        item = create_item("Tyres")
        row = db.session.get(RepairItem, item["id"])
        row.customer_approved = True
        db.session.commit()
        rv = client.delete(f"{BASE}/repair-items/{item['id']}", headers=headers)
        assert rv.status_code == 409


# ═════════════════════════════════════════════════════════════════════════════
# 2. Check-result links
# ═════════════════════════════════════════════════════════════════════════════


class TestCheckResultLinks:
    def test_link_and_unlink(self, client, create_item, findings, headers):
        item = create_item("Tyres")
        url = f"{BASE}/repair-items/{item['id']}/check-results"

        rv = client.post(url, json={"checkResultId": findings[1].id}, headers=headers)
        assert rv.status_code == 201

        rv = client.delete(f"{url}/{findings[1].id}", headers=headers)
        assert rv.status_code == 200
        assert rv.get_json()["removed"] is True

    def test_unlink_missing_link_is_idempotent(self, client, create_item, findings, headers):
        item = create_item("Tyres")
        rv = client.delete(f"{BASE}/repair-items/{item['id']}/check-results/{findings[1].id}",
                           headers=headers)
        assert rv.status_code == 200
        assert rv.get_json()["removed"] is False

    def test_duplicate_link_conflicts(self, client, create_item, findings, headers):
        item = create_item("Tyres", [findings[1].id])
        rv = client.post(f"{BASE}/repair-items/{item['id']}/check-results",
                         json={"checkResultId": findings[1].id}, headers=headers)
        assert rv.status_code == 409
        assert rv.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_link_to_group_conflicts(self, client, create_item, findings, headers):
        group = create_item("Brakes", [findings[0].id], isGroup=True)
        rv = client.post(f"{BASE}/repair-items/{group['id']}/check-results",
                         json={"checkResultId": findings[1].id}, headers=headers)
        assert rv.status_code == 409

    def test_link_requires_id(self, client, create_item, headers):
        item = create_item("Tyres")
        rv = client.post(f"{BASE}/repair-items/{item['id']}/check-results", json={},
                         headers=headers)
        assert rv.status_code == 400

    def test_unassigned_excludes_linked_and_green(self, client, create_item, health_check,
                                                  findings, headers):
        create_item("Pads", [findings[0].id])
        url = f"{BASE}/health-checks/{health_check.id}/unassigned-check-results"

        ids = [cr["id"] for cr in client.get(url, headers=headers).get_json()["checkResults"]]
        assert ids == [findings[1].id, findings[3].id]

        with_green = client.get(f"{url}?include_green=true", headers=headers).get_json()
        assert findings[2].id in [cr["id"] for cr in with_green["checkResults"]]


# ═════════════════════════════════════════════════════════════════════════════
# 3. Labour / parts and totals
# ═════════════════════════════════════════════════════════════════════════════


class TestLabourAndParts:
    def test_labour_and_parts_totals(self, client, create_item, labour_code, supplier, headers):
        """1.5h @ 85.00 plus 2 x 45.00 parts at 20% VAT → 261.00."""
        item = create_item("Brake pads")
        rv = client.post(f"{BASE}/repair-items/{item['id']}/labour",
                         json={"labourCodeId": labour_code.id, "hours": 1.5}, headers=headers)
        assert rv.status_code == 201
        assert rv.get_json()["total"] == 127.5
        assert rv.get_json()["rate"] == 85.0

        rv = client.post(f"{BASE}/repair-items/{item['id']}/parts",
                         json={"description": "Pad set", "quantity": 2, "costPrice": "30.00",
                               "sellPrice": "45.00", "supplierId": supplier.id},
                         headers=headers)
        assert rv.status_code == 201
        part = rv.get_json()
        assert part["lineTotal"] == 90.0
        assert part["supplierName"] == "Parts Direct"
        assert part["marginPercent"] == 33.33

        body = client.get(f"{BASE}/repair-items/{item['id']}", headers=headers).get_json()
        assert body["labourTotal"] == 127.5
        assert body["partsTotal"] == 90.0
        assert body["subtotal"] == 217.5
        assert body["vatAmount"] == 43.5
        assert body["totalIncVat"] == 261.0

    def test_vat_exempt_labour(self, client, create_item, mot_code, headers):
        item = create_item("MOT")
        client.post(f"{BASE}/repair-items/{item['id']}/labour",
                    json={"labourCodeId": mot_code.id, "hours": 1}, headers=headers)
        body = client.get(f"{BASE}/repair-items/{item['id']}", headers=headers).get_json()
        assert body["vatAmount"] == 0.0
        assert body["totalIncVat"] == 54.85

    def test_organisation_vat_override(self, client, org, create_item, labour_code, headers):
        org.vat_rate = Decimal("5.00")
        db.session.commit()
        item = create_item("Pads")
        client.post(f"{BASE}/repair-items/{item['id']}/labour",
                    json={"labourCodeId": labour_code.id, "hours": 2}, headers=headers)
        body = client.get(f"{BASE}/repair-items/{item['id']}", headers=headers).get_json()
        assert body["vatAmount"] == 8.5

    def test_labour_update_and_delete_recalculate(self, client, create_item, labour_code,
                                                  headers):
        item = create_item("Pads")
        labour = client.post(f"{BASE}/repair-items/{item['id']}/labour",
                             json={"labourCodeId": labour_code.id, "hours": 1},
                             headers=headers).get_json()

        rv = client.patch(f"{BASE}/repair-labour/{labour['id']}",
                          json={"hours": 2, "discountPercent": 10}, headers=headers)
        assert rv.status_code == 200
        assert rv.get_json()["total"] == 153.0
        body = client.get(f"{BASE}/repair-items/{item['id']}", headers=headers).get_json()
        assert body["labourTotal"] == 153.0

        assert client.delete(f"{BASE}/repair-labour/{labour['id']}",
                             headers=headers).status_code == 200
        body = client.get(f"{BASE}/repair-items/{item['id']}", headers=headers).get_json()
        assert body["labourTotal"] == 0.0
        assert body["totalIncVat"] == 0.0

    def test_labour_rejects_negative_hours(self, client, create_item, labour_code, headers):
        item = create_item("Pads")
        rv = client.post(f"{BASE}/repair-items/{item['id']}/labour",
                         json={"labourCodeId": labour_code.id, "hours": -1}, headers=headers)
        assert rv.status_code == 400

    def test_inactive_labour_code_rejected(self, client, create_item, labour_code, headers):
        labour_code.is_active = False
        db.session.commit()
        item = create_item("Pads")
        rv = client.post(f"{BASE}/repair-items/{item['id']}/labour",
                         json={"labourCodeId": labour_code.id, "hours": 1}, headers=headers)
        assert rv.status_code == 400

    def test_parts_require_description(self, client, create_item, headers):
        item = create_item("Pads")
        rv = client.post(f"{BASE}/repair-items/{item['id']}/parts",
                         json={"costPrice": 1, "sellPrice": 2}, headers=headers)
        assert rv.status_code == 400

    def test_parts_update_recalculates(self, client, create_item, headers):
        item = create_item("Pads")
        part = client.post(f"{BASE}/repair-items/{item['id']}/parts",
                           json={"description": "Pad set", "costPrice": 10, "sellPrice": 20},
                           headers=headers).get_json()
        rv = client.patch(f"{BASE}/repair-parts/{part['id']}", json={"quantity": 3},
                          headers=headers)
        assert rv.status_code == 200
        assert rv.get_json()["lineTotal"] == 60.0
        body = client.get(f"{BASE}/repair-items/{item['id']}", headers=headers).get_json()
        assert body["partsTotal"] == 60.0


# ═════════════════════════════════════════════════════════════════════════════
# 4. Options
# ═════════════════════════════════════════════════════════════════════════════


class TestOptions:
    def test_option_pricing_is_independent(self, client, create_item, labour_code, headers):
        item = create_item("Tyres")
        budget = client.post(f"{BASE}/repair-items/{item['id']}/options",
                             json={"name": "Budget"}, headers=headers).get_json()
        premium = client.post(f"{BASE}/repair-items/{item['id']}/options",
                              json={"name": "Premium", "isRecommended": True},
                              headers=headers).get_json()
        assert (budget["sortOrder"], premium["sortOrder"]) == (1, 2)

        rv = client.post(f"{BASE}/repair-options/{premium['id']}/labour",
                         json={"labourCodeId": labour_code.id, "hours": 1}, headers=headers)
        assert rv.status_code == 201
        assert rv.get_json()["repairOptionId"] == premium["id"]
        assert rv.get_json()["repairItemId"] is None

        options = client.get(f"{BASE}/repair-items/{item['id']}/options",
                             headers=headers).get_json()["options"]
        by_name = {o["name"]: o for o in options}
        assert by_name["Premium"]["totalIncVat"] == 102.0
        assert by_name["Budget"]["totalIncVat"] == 0.0

        body = client.get(f"{BASE}/repair-items/{item['id']}", headers=headers).get_json()
        assert body["labourTotal"] == 0.0
        assert body["labourStatus"] == "in_progress"

        labour = client.get(f"{BASE}/repair-options/{premium['id']}/labour",
                            headers=headers).get_json()["labour"]
        assert len(labour) == 1

    def test_select_and_clear_option(self, client, create_item, headers):
        item = create_item("Tyres")
        option = client.post(f"{BASE}/repair-items/{item['id']}/options",
                             json={"name": "Budget"}, headers=headers).get_json()

        rv = client.post(f"{BASE}/repair-items/{item['id']}/select-option",
                         json={"optionId": option["id"]}, headers=headers)
        assert rv.get_json()["selectedOptionId"] == option["id"]

        rv = client.post(f"{BASE}/repair-items/{item['id']}/select-option",
                         json={"optionId": None}, headers=headers)
        assert rv.get_json()["selectedOptionId"] is None

    def test_select_option_of_other_item_is_404(self, client, create_item, headers):
        first = create_item("One")
        second = create_item("Two")
        option = client.post(f"{BASE}/repair-items/{second['id']}/options",
                             json={"name": "Budget"}, headers=headers).get_json()
        rv = client.post(f"{BASE}/repair-items/{first['id']}/select-option",
                         json={"optionId": option["id"]}, headers=headers)
        assert rv.status_code == 404

    def test_delete_selected_option_clears_selection(self, client, create_item, labour_code,
                                                     headers):
        item = create_item("Tyres")
        option = client.post(f"{BASE}/repair-items/{item['id']}/options",
                             json={"name": "Budget"}, headers=headers).get_json()
        client.post(f"{BASE}/repair-options/{option['id']}/labour",
                    json={"labourCodeId": labour_code.id, "hours": 1}, headers=headers)
        client.post(f"{BASE}/repair-items/{item['id']}/select-option",
                    json={"optionId": option["id"]}, headers=headers)

        rv = client.delete(f"{BASE}/repair-options/{option['id']}", headers=headers)
        assert rv.status_code == 200
        body = client.get(f"{BASE}/repair-items/{item['id']}", headers=headers).get_json()
        assert body["selectedOptionId"] is None
        assert body["options"] == []
        assert RepairLabour.query.count() == 0

    def test_update_option(self, client, create_item, headers):
        item = create_item("Tyres")
        option = client.post(f"{BASE}/repair-items/{item['id']}/options",
                             json={"name": "Budget"}, headers=headers).get_json()
        rv = client.patch(f"{BASE}/repair-options/{option['id']}",
                          json={"name": "Economy", "sortOrder": 5}, headers=headers)
        assert rv.status_code == 200
        assert rv.get_json()["name"] == "Economy"
        assert rv.get_json()["sortOrder"] == 5

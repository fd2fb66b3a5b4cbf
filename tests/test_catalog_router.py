"""Tests for services, plans (with deliverable stock) and coupon administration."""
from decimal import Decimal

import pytest

from app.models.catalog import Plan, Deliverable, DeliverableStatus
from app.models.ticket import ChatMessage, Ticket
from app.models.user_subscription import UserSubscription
from app.models.user import UserRole


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, name="Admin")


class TestServices:
    def test_public_listing(self, api, marketplace):
        response = api.get("/services")
        assert response.status_code == 200
        assert [s["name"] for s in response.json()] == ["Netflix"]

    def test_service_plans_cheapest_first(self, api, db_session, marketplace):
        db_session.add(Plan(
            service_id=marketplace["service"].id,
            seller_id=marketplace["seller"].id,
            name="Básico",
            price=Decimal("12.90"),
            features=[],
            stock=0,
        ))
        db_session.commit()

        plans = api.get(f"/services/{marketplace['service'].id}/plans").json()
        assert [p["name"] for p in plans] == ["Básico", "Premium 4 telas"]

    def test_only_admin_creates(self, api, admin):
        assert api.post("/services", json={"name": "Disney+"}).status_code == 403
        api.login(admin)
        response = api.post("/services", json={"name": "Disney+", "description": "Filmes"})
        assert response.status_code == 201
        assert response.json()["name"] == "Disney+"

    def test_update_and_delete(self, api, admin, marketplace):
        api.login(admin)
        service_id = marketplace["service"].id
        assert api.patch(f"/services/{service_id}", json={"logo_url": "https://cdn/x.png"}).json()["logo_url"] \
            == "https://cdn/x.png"
        assert api.delete(f"/services/{service_id}").status_code == 204
        assert api.get(f"/services/{service_id}").status_code == 404


class TestPlans:
    def test_seller_creates_plan(self, api, marketplace):
        api.login(marketplace["seller"])
        response = api.post("/plans", json={
            "service_id": marketplace["service"].id,
            "name": "Padrão",
            "price": "19.90",
            "features": ["HD"],
        })
        assert response.status_code == 201
        data = response.json()
        assert data["seller_id"] == marketplace["seller"].id
        assert data["stock"] == 0
        assert data["account_model"] == "Capturada"

    def test_customer_cannot_create(self, api, marketplace):
        response = api.post("/plans", json={"service_id": marketplace["service"].id, "name": "X", "price": "1.00"})
        assert response.status_code == 403

    def test_other_seller_cannot_edit(self, api, marketplace, make_user):
        api.login(make_user(UserRole.SELLER))
        response = api.patch(f"/plans/{marketplace['plan'].id}", json={"price": "1.00"})
        assert response.status_code == 403

    def test_stock_upload_and_removal(self, api, db_session, marketplace):
        api.login(marketplace["seller"])
        plan_id = marketplace["plan"].id

        created = api.post(f"/plans/{plan_id}/deliverables", json={"contents": ["a", "  ", "b"]})
        assert created.status_code == 201
        assert [d["content"] for d in created.json()] == ["a", "b"]
        assert api.get(f"/plans/{plan_id}").json()["stock"] == 2

        removed = api.delete(f"/plans/{plan_id}/deliverables/{created.json()[0]['id']}")
        assert removed.status_code == 204
        assert api.get(f"/plans/{plan_id}").json()["stock"] == 1

    def test_sold_deliverable_cannot_be_removed(self, api, db_session, marketplace, add_stock):
        item, = add_stock(marketplace["plan"], "vendida")
        item.status = DeliverableStatus.SOLD
        db_session.commit()

        api.login(marketplace["seller"])
        response = api.delete(f"/plans/{marketplace['plan'].id}/deliverables/{item.id}")
        assert response.status_code == 409
        assert db_session.get(Deliverable, item.id) is not None

    def test_blank_upload_rejected(self, api, marketplace):
        api.login(marketplace["seller"])
        response = api.post(f"/plans/{marketplace['plan'].id}/deliverables", json={"contents": [" "]})
        assert response.status_code == 422


class TestCoupons:
    def test_admin_crud(self, api, admin):
        api.login(admin)
        created = api.post("/coupons", json={"code": "natal25", "discount_percentage": 25})
        assert created.status_code == 201
        assert created.json()["code"] == "NATAL25"

        assert api.post("/coupons", json={"code": "NATAL25", "discount_percentage": 5}).status_code == 400

        updated = api.patch("/coupons/natal25", json={"discount_percentage": 30})
        assert updated.json()["discount_percentage"] == 30

        assert api.delete("/coupons/NATAL25").status_code == 204
        assert api.delete("/coupons/NATAL25").status_code == 404

    @pytest.mark.parametrize("discount", [0, 101])
    def test_discount_range(self, api, admin, discount):
        api.login(admin)
        response = api.post("/coupons", json={"code": "X", "discount_percentage": discount})
        assert response.status_code == 422

    def test_customer_cannot_list(self, api):
        assert api.get("/coupons").status_code == 403

    def test_abandoned_cart_coupon(self, api, admin):
        assert api.get("/coupons/special").json()["abandoned_cart_coupon_code"] is None

        api.login(admin)
        saved = api.put("/admin/settings/special-coupons", json={"abandoned_cart_coupon_code": "volta10"})
        assert saved.json()["abandoned_cart_coupon_code"] == "VOLTA10"
        assert api.get("/coupons/special").json()["abandoned_cart_coupon_code"] == "VOLTA10"


class TestUsers:
    def test_profile_update(self, api, marketplace):
        response = api.patch("/users/me", json={"display_name": "Maria Souza", "phone_number": "11911112222"})
        assert response.status_code == 200
        assert response.json()["display_name"] == "Maria Souza"

    def test_presence_heartbeat(self, api, marketplace):
        beat = api.post("/users/me/presence")
        assert beat.json()["online"] is True

        seen = api.get(f"/users/{marketplace['customer'].id}/presence").json()
        assert seen["label"] == "Online"
        assert api.get(f"/users/{marketplace['seller'].id}/presence").json()["label"] == "Offline"

    def test_admin_promotes_seller(self, api, admin, marketplace):
        api.login(admin)
        customer_id = marketplace["customer"].id
        response = api.patch(f"/users/{customer_id}/role", json={"role": "seller"})
        assert response.status_code == 200
        assert response.json()["role"] == "seller"
        assert len(api.get("/users?role=seller").json()) == 2

    def test_admin_cannot_demote_self(self, api, admin):
        api.login(admin)
        response = api.patch(f"/users/{admin.id}/role", json={"role": "customer"})
        assert response.status_code == 400

    def test_admin_deletes_seller_with_plans(self, api, db_session, admin, marketplace, add_stock):
        add_stock(marketplace["plan"], "conta-1")
        plan_id = marketplace["plan"].id

        api.login(admin)
        response = api.delete(f"/users/{marketplace['seller'].id}")

        assert response.status_code == 204
        assert db_session.query(Plan).filter(Plan.id == plan_id).count() == 0
        assert db_session.query(Deliverable).count() == 0
        assert api.get(f"/plans/{plan_id}").status_code == 404

    def test_admin_deletes_customer_with_purchase(self, api, db_session, admin, marketplace, add_stock):
        add_stock(marketplace["plan"], "conta-1")
        bought = api.post("/checkout", json={"plan_id": marketplace["plan"].id, "coupon_code": "FREE100"})
        assert bought.json()["status"] == "fulfilled"

        api.login(admin)
        response = api.delete(f"/users/{marketplace['customer'].id}")

        assert response.status_code == 204
        assert db_session.query(UserSubscription).count() == 0
        assert db_session.query(Ticket).count() == 0
        assert db_session.query(ChatMessage).count() == 0
        assert db_session.query(Plan).count() == 1

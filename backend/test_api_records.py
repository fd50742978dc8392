"""Auth, plain record CRUD, repair field scope, lead conversion and dashboard stats over HTTP."""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from conftest import add_customer, add_product
from crm.api.deps import get_access_policy
from crm.core.config import settings
from crm.core.permissions import WRITE_MATRIX, AccessPolicy, Resource, Role
from crm.core.security import create_access_token
from crm.db.init_db import init_db
from crm.main import app
from crm.models import Customer, Lead, Order, Product, Repair
from crm.services.order_service import OrderService


class TestAuth:
    def test_bad_password(self, client):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "wrong"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication failed"

    def test_unknown_user(self, client):
        response = client.post("/api/auth/login", json={"username": "owner", "password": "password"})
        assert response.status_code == 401

    def test_login_sets_cookie(self, client):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "password"})
        assert response.status_code == 200
        assert response.json()["user"] == {"username": "admin", "role": "Admin", "customerId": None}
        assert "crm_session" in response.cookies
        # The cookie alone is enough
        assert client.get("/api/auth/me").status_code == 200

    def test_me_describes_navigation(self, client, as_user):
        me = client.get("/api/auth/me", headers=as_user("tech")).json()
        assert me["user"]["role"] == "Technician"
        assert me["landingPath"] == "/repairs"
        assert me["permissions"]["repairs"] == {"read": True, "write": True, "delete": False}
        assert me["routes"]["/repairs"] is True
        assert me["routes"]["/orders"] is False

    def test_logout_ends_session(self, client, as_user):
        headers = as_user("manager")
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        client.cookies.clear()
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_login_token_is_signed_jwt(self, client):
        response = client.post("/api/auth/login", json={"username": "tech", "password": "password"})
        token = response.json()["accessToken"]
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        assert claims["sub"] == "tech"
        assert claims["role"] == "Technician"
        assert claims["exp"] > datetime.now(timezone.utc).timestamp()

    def test_token_works_without_login(self, client):
        # Any worker holding the key accepts the token; no server-side session
        token = create_access_token("customer", Role.CUSTOMER, customer_id="c-123")
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["user"] == {"username": "customer", "role": "Customer", "customerId": "c-123"}

    def test_token_signed_with_other_key_rejected(self, client):
        now = datetime.now(timezone.utc)
        forged = jwt.encode(
            {"sub": "admin", "role": "Admin", "jti": "x", "iat": now, "exp": now + timedelta(minutes=5)},
            "not-the-server-key",
            algorithm=settings.ALGORITHM,
        )
        assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {forged}"}).status_code == 401

    def test_expired_token_rejected(self, client):
        token = create_access_token("admin", Role.ADMIN, expires_delta=timedelta(seconds=-1))
        assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401

    def test_token_with_unknown_role_rejected(self, client):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "admin", "role": "Owner", "jti": "x", "iat": now, "exp": now + timedelta(minutes=5)},
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
        )
        assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401

    def test_logout_leaves_other_tokens_valid(self, client, as_user):
        first = as_user("admin")
        second = as_user("admin")
        assert client.post("/api/auth/logout", headers=first).status_code == 200
        client.cookies.clear()
        assert client.get("/api/auth/me", headers=first).status_code == 401
        assert client.get("/api/auth/me", headers=second).status_code == 200


class TestCustomers:
    def test_crud(self, client, as_user):
        sales = as_user("salesman")
        created = client.post(
            "/api/customers",
            json={"name": "John Doe", "email": "john@example.com", "phone": "555-0101", "segment": "VIP"},
            headers=sales,
        )
        assert created.status_code == 201
        customer_id = created.json()["id"]

        found = client.get("/api/customers", params={"search": "john@"}, headers=sales).json()
        assert [c["id"] for c in found] == [customer_id]
        assert client.get("/api/customers", params={"search": "nobody"}, headers=sales).json() == []

        updated = client.put(f"/api/customers/{customer_id}", json={"notes": "Prefers email"}, headers=sales)
        assert updated.json()["notes"] == "Prefers email"
        assert updated.json()["segment"] == "VIP"

        assert client.delete(f"/api/customers/{customer_id}", headers=sales).status_code == 403
        assert client.delete(f"/api/customers/{customer_id}", headers=as_user("manager")).status_code == 204
        assert client.get(f"/api/customers/{customer_id}", headers=sales).status_code == 404

    def test_invalid_segment(self, client, as_user):
        response = client.post("/api/customers", json={"name": "X", "segment": "Gold"}, headers=as_user("admin"))
        assert response.status_code == 422

    def test_technician_cannot_read(self, client, as_user):
        assert client.get("/api/customers", headers=as_user("tech")).status_code == 403

    def test_null_name_rejected(self, client, db, as_user):
        customer = add_customer(db, "Jane Roe")
        response = client.put(f"/api/customers/{customer.id}", json={"name": None}, headers=as_user("admin"))
        assert response.status_code == 422
        db.expire_all()
        assert db.get(Customer, customer.id).name == "Jane Roe"


class TestProducts:
    def test_manager_manages_inventory(self, client, as_user):
        manager = as_user("manager")
        created = client.post(
            "/api/products",
            json={"name": "Screen Protector", "price": 1999, "stock": 100, "category": "Accessories"},
            headers=manager,
        )
        assert created.status_code == 201
        product_id = created.json()["id"]

        restocked = client.put(f"/api/products/{product_id}", json={"stock": 120}, headers=manager)
        assert restocked.status_code == 200
        assert restocked.json()["stock"] == 120

        assert client.delete(f"/api/products/{product_id}", headers=manager).status_code == 403
        assert client.delete(f"/api/products/{product_id}", headers=as_user("admin")).status_code == 204

    def test_negative_stock_or_price_rejected(self, client, as_user):
        admin = as_user("admin")
        assert client.post("/api/products", json={"name": "X", "price": 1, "stock": -1}, headers=admin).status_code == 422
        assert client.post("/api/products", json={"name": "X", "price": -1, "stock": 1}, headers=admin).status_code == 422

    def test_sales_reads_but_cannot_write(self, client, db, as_user):
        add_product(db, "Case", price=4999, stock=50)
        sales = as_user("salesman")
        assert len(client.get("/api/products", headers=sales).json()) == 1
        assert client.post("/api/products", json={"name": "X", "price": 1, "stock": 0}, headers=sales).status_code == 403

    def test_low_stock_filter(self, client, db, as_user):
        add_product(db, "Charging Cable", price=2999, stock=4)
        add_product(db, "iPhone 15 Pro Case", price=4999, stock=50)
        low = client.get("/api/products", params={"lowStock": "true"}, headers=as_user("admin")).json()
        assert [p["name"] for p in low] == ["Charging Cable"]

    def test_stock_edit_needs_stock_editor_role(self, client, db, as_user):
        """With a policy letting Sales write inventory, Sales may reprice but not restock."""
        write = dict(WRITE_MATRIX)
        write[Role.SALES] = write[Role.SALES] | {Resource.INVENTORY}
        app.dependency_overrides[get_access_policy] = lambda: AccessPolicy(write=write)

        product = add_product(db, "Case", price=4999, stock=50)
        sales = as_user("salesman")
        assert client.put(f"/api/products/{product.id}", json={"price": 3999}, headers=sales).status_code == 200
        assert client.put(f"/api/products/{product.id}", json={"stock": 500}, headers=sales).status_code == 403
        db.expire_all()
        assert db.get(Product, product.id).stock == 50

    @pytest.mark.parametrize("field", ["name", "price", "stock"])
    def test_null_required_field_rejected(self, client, db, as_user, field):
        product = add_product(db, "Case", price=4999, stock=50)
        response = client.put(f"/api/products/{product.id}", json={field: None}, headers=as_user("admin"))
        assert response.status_code == 422
        db.expire_all()
        saved = db.get(Product, product.id)
        assert (saved.name, saved.price, saved.stock) == ("Case", 4999, 50)

    def test_omitted_fields_unchanged(self, client, db, as_user):
        product = add_product(db, "Case", price=4999, stock=50)
        response = client.put(f"/api/products/{product.id}", json={"category": "Accessories"}, headers=as_user("admin"))
        assert response.status_code == 200
        assert (response.json()["name"], response.json()["price"], response.json()["stock"]) == ("Case", 4999, 50)


class TestRepairs:
    @pytest.fixture
    def repairs(self, db):
        mine = Repair(device_name="MacBook Pro M1", serial_number="C02XYZ123", technician_id="tech", amount=25000)
        theirs = Repair(device_name="Pixel 7", technician_id="someone-else")
        db.add_all([mine, theirs])
        db.commit()
        return mine.id, theirs.id

    def test_technician_sees_only_assigned(self, client, repairs, as_user):
        mine, theirs = repairs
        tech = as_user("tech")
        assert [r["id"] for r in client.get("/api/repairs", headers=tech).json()] == [mine]
        assert client.get(f"/api/repairs/{theirs}", headers=tech).status_code == 404
        assert len(client.get("/api/repairs", headers=as_user("manager")).json()) == 2

    def test_technician_updates_status_and_notes(self, client, repairs, as_user):
        mine, _ = repairs
        response = client.put(
            f"/api/repairs/{mine}",
            json={"status": "In Repair", "technicianNotes": "Replaced display cable"},
            headers=as_user("tech"),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "In Repair"
        assert response.json()["technicianNotes"] == "Replaced display cable"

    @pytest.mark.parametrize("payload", [
        {"amount": 1},
        {"status": "Completed", "amount": 1},
        {"deviceName": "Something else"},
        {"technicianId": "tech2"},
    ])
    def test_technician_cannot_touch_other_fields(self, client, db, repairs, as_user, payload):
        mine, _ = repairs
        response = client.put(f"/api/repairs/{mine}", json=payload, headers=as_user("tech"))
        assert response.status_code == 403
        db.expire_all()
        repair = db.get(Repair, mine)
        assert (repair.amount, repair.status, repair.device_name) == (25000, "Received", "MacBook Pro M1")

    def test_technician_cannot_create_or_delete(self, client, repairs, as_user):
        mine, _ = repairs
        tech = as_user("tech")
        assert client.post("/api/repairs", json={"deviceName": "iPad"}, headers=tech).status_code == 403
        assert client.delete(f"/api/repairs/{mine}", headers=tech).status_code == 403

    def test_manager_edits_any_field(self, client, repairs, as_user):
        mine, _ = repairs
        response = client.put(f"/api/repairs/{mine}", json={"amount": 30000, "status": "Completed"}, headers=as_user("manager"))
        assert response.status_code == 200
        assert response.json()["amount"] == 30000

    def test_status_filter(self, client, repairs, as_user):
        found = client.get("/api/repairs", params={"status": "Received", "search": "pixel"}, headers=as_user("admin")).json()
        assert [r["deviceName"] for r in found] == ["Pixel 7"]

    def test_null_device_name_rejected(self, client, db, repairs, as_user):
        mine, _ = repairs
        response = client.put(f"/api/repairs/{mine}", json={"deviceName": None}, headers=as_user("admin"))
        assert response.status_code == 422
        db.expire_all()
        assert db.get(Repair, mine).device_name == "MacBook Pro M1"


class TestLeads:
    def test_convert_lead(self, client, db, as_user):
        sales = as_user("salesman")
        lead_id = client.post(
            "/api/leads",
            json={"name": "Alex Buyer", "email": "alex@example.com", "interest": "iPhone repair"},
            headers=sales,
        ).json()["id"]

        response = client.post(f"/api/leads/{lead_id}/convert", headers=sales)
        assert response.status_code == 200
        customer = db.get(Customer, response.json()["customerId"])
        assert customer.name == "Alex Buyer"
        assert customer.segment == "New"
        assert "iPhone repair" in customer.notes
        db.expire_all()
        assert db.get(Lead, lead_id).status == "Converted"

        assert client.post(f"/api/leads/{lead_id}/convert", headers=sales).status_code == 400
        assert client.post("/api/leads/missing/convert", headers=sales).status_code == 404

    def test_convert_needs_customer_write(self, client, db, as_user):
        lead = Lead(name="Web Visitor")
        db.add(lead)
        db.commit()
        assert client.post(f"/api/leads/{lead.id}/convert", headers=as_user("customer")).status_code == 403
        assert db.query(Customer).count() == 0

    def test_customer_can_request_callback(self, client, as_user):
        response = client.post(
            "/api/leads", json={"name": "Web Visitor", "callbackRequested": True}, headers=as_user("customer")
        )
        assert response.status_code == 201
        assert response.json()["status"] == "New"
        assert response.json()["callbackRequested"] is True

    def test_manager_has_no_leads(self, client, as_user):
        assert client.get("/api/leads", headers=as_user("manager")).status_code == 403

    def test_null_name_rejected(self, client, db, as_user):
        lead = Lead(name="Web Visitor")
        db.add(lead)
        db.commit()
        response = client.put(f"/api/leads/{lead.id}", json={"name": None}, headers=as_user("salesman"))
        assert response.status_code == 422
        db.expire_all()
        assert db.get(Lead, lead.id).name == "Web Visitor"


class TestAppointments:
    def test_book_and_cancel(self, client, as_user):
        customer = as_user("customer")
        day = (datetime.now() + timedelta(days=1)).replace(microsecond=0)
        created = client.post(
            "/api/appointments",
            json={"customerName": "Jane Smith", "date": day.isoformat(), "time": "14:00", "purpose": "Pickup"},
            headers=customer,
        )
        assert created.status_code == 201
        appointment_id = created.json()["id"]

        assert [a["id"] for a in client.get("/api/appointments", headers=customer).json()] == [appointment_id]
        assert client.get("/api/appointments", headers=as_user("salesman")).status_code == 403
        assert client.delete(f"/api/appointments/{appointment_id}", headers=customer).status_code == 403
        assert client.delete(f"/api/appointments/{appointment_id}", headers=as_user("manager")).status_code == 204
        assert client.delete(f"/api/appointments/{appointment_id}", headers=as_user("admin")).status_code == 404


class TestDashboard:
    def test_stats(self, client, db, as_user):
        customer = add_customer(db)
        cable = add_product(db, "Charging Cable", price=2999, stock=4)
        add_product(db, "Case", price=4999, stock=50)
        db.add_all([Repair(device_name="A", status="Diagnosing"), Repair(device_name="B", status="Delivered")])
        db.add(Lead(name="Lead"))
        db.commit()
        OrderService(db).place_order(customer.id, [{"productId": cable.id, "quantity": 2}])

        response = client.get("/api/dashboard/stats", headers=as_user("manager"))
        assert response.status_code == 200
        assert response.json() == {
            "totalCustomers": 1,
            "totalProducts": 2,
            "lowStockProducts": 1,
            "activeRepairs": 1,
            "totalRevenue": 2 * 2999,
            "monthlyRevenue": 2 * 2999,
            "newLeads": 1,
        }

    def test_sales_cannot_see_analytics(self, client, as_user):
        assert client.get("/api/dashboard/stats", headers=as_user("salesman")).status_code == 403


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_demo_seed_runs_once(engine, session_factory, db):
    init_db(bind=engine, session_factory=session_factory, seed=True)
    init_db(bind=engine, session_factory=session_factory, seed=True)

    assert db.query(Customer).count() == 2
    assert db.query(Product).count() == 3
    assert db.query(Repair).one().technician_id == "tech"
    order = db.query(Order).one()
    assert order.payment_status == "Pending"
    assert order.total == 4999 + 2 * 1999
    stock = {p.name: p.stock for p in db.query(Product)}
    assert stock == {"iPhone 15 Pro Case": 49, "Screen Protector": 98, "Charging Cable": 4}


def test_seed_can_be_disabled(engine, session_factory, db):
    init_db(bind=engine, session_factory=session_factory, seed=False)
    assert db.query(Customer).count() == 0

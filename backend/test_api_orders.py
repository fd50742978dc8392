"""Orders over HTTP: placement, error mapping, invoices and customer scoping."""
import pytest

from conftest import add_customer, add_product, login
from crm.models import Lead, Order, Product, Repair


@pytest.fixture
def shop(db):
    customer = add_customer(db, "Jane Smith", email="jane@example.com")
    product = add_product(db, "Charging Cable", price=2999, stock=4)
    return customer, product


def place(client, headers, customer_id, product_id, quantity, **extra):
    body = {"customerId": customer_id, "items": [{"productId": product_id, "quantity": quantity}]}
    body.update(extra)
    return client.post("/api/orders", json=body, headers=headers)


def test_salesman_places_order(client, db, shop, as_user):
    customer, product = shop
    response = place(client, as_user("salesman"), customer.id, product.id, 3, paymentStatus="Paid")

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["customerId"] == customer.id
    assert body["total"] == 3 * 2999
    assert body["paymentStatus"] == "Paid"
    assert body["items"] == [{"productId": product.id, "quantity": 3, "unitPrice": 2999}]
    assert body["createdAt"]
    db.expire_all()
    assert db.get(Product, product.id).stock == 1


def test_insufficient_stock_is_a_conflict(client, db, shop, as_user):
    customer, product = shop
    response = place(client, as_user("admin"), customer.id, product.id, 5)

    assert response.status_code == 409
    assert "Charging Cable" in response.json()["detail"]
    db.expire_all()
    assert db.get(Product, product.id).stock == 4
    assert db.query(Order).count() == 0


def test_unknown_product_is_not_found(client, shop, as_user):
    customer, _ = shop
    response = place(client, as_user("admin"), customer.id, "missing", 1)
    assert response.status_code == 404
    assert response.json()["detail"] == "Resource not found"


def test_unknown_customer_is_not_found(client, shop, as_user):
    _, product = shop
    assert place(client, as_user("admin"), "missing", product.id, 1).status_code == 404


@pytest.mark.parametrize("body", [
    {"items": []},
    {"items": [{"quantity": 0}]},
    {"items": [{"quantity": -2}]},
    {"items": [{"quantity": 1}], "paymentStatus": "Refunded"},
])
def test_bad_orders_are_rejected(client, db, shop, as_user, body):
    customer, product = shop
    for line in body["items"]:
        line["productId"] = product.id
    response = client.post("/api/orders", json={"customerId": customer.id, **body}, headers=as_user("admin"))
    assert response.status_code == 400
    assert db.query(Order).count() == 0


def test_malformed_body_is_unprocessable(client, as_user):
    response = client.post("/api/orders", json={"items": "nope"}, headers=as_user("admin"))
    assert response.status_code == 422


@pytest.mark.parametrize("username", ["tech", "manager", "customer"])
def test_roles_without_sales_write_cannot_order(client, db, shop, as_user, username):
    customer, product = shop
    response = place(client, as_user(username), customer.id, product.id, 1)
    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied"
    db.expire_all()
    assert db.get(Product, product.id).stock == 4


def test_no_session_is_unauthorized(client, shop):
    customer, product = shop
    client.cookies.clear()
    response = place(client, {}, customer.id, product.id, 1)
    assert response.status_code == 401
    assert client.get("/api/orders", headers={"Authorization": "Bearer not-a-token"}).status_code == 401


def test_invoice_keeps_sale_price(client, db, shop, as_user):
    customer, product = shop
    headers = as_user("admin")
    order_id = place(client, headers, customer.id, product.id, 2).json()["id"]

    assert client.put(f"/api/products/{product.id}", json={"price": 3500}, headers=headers).status_code == 200

    response = client.get(f"/api/orders/{order_id}/invoice", headers=headers)
    assert response.status_code == 200
    invoice = response.json()
    assert invoice["total"] == 2 * 2999
    assert invoice["customer"]["name"] == "Jane Smith"
    line = invoice["items"][0]
    assert line["unitPrice"] == 2999
    assert line["lineTotal"] == 2 * 2999
    assert line["productName"] == "Charging Cable"
    assert line["product"]["price"] == 3500


def test_invoice_pdf(client, shop, as_user):
    customer, product = shop
    headers = as_user("salesman")
    order_id = place(client, headers, customer.id, product.id, 1).json()["id"]

    response = client.get(f"/api/orders/{order_id}/invoice.pdf", headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


def test_unknown_invoice(client, as_user):
    assert client.get("/api/orders/missing/invoice", headers=as_user("admin")).status_code == 404


def test_customer_sees_only_own_orders(client, db, as_user):
    own = add_customer(db, "First Customer")
    customer_headers = login(client, "customer")  # bound to the oldest customer
    other = add_customer(db, "Second Customer")
    product = add_product(db, "Screen Protector", price=1999, stock=100)

    staff = as_user("salesman")
    own_order = place(client, staff, own.id, product.id, 1).json()["id"]
    other_order = place(client, staff, other.id, product.id, 1).json()["id"]

    listed = client.get("/api/orders", headers=customer_headers).json()
    assert [o["id"] for o in listed] == [own_order]
    assert client.get(f"/api/orders/{own_order}/invoice", headers=customer_headers).status_code == 200
    assert client.get(f"/api/orders/{other_order}/invoice", headers=customer_headers).status_code == 404
    assert client.get(f"/api/orders/{other_order}/invoice.pdf", headers=customer_headers).status_code == 404

    assert len(client.get("/api/orders", headers=staff).json()) == 2


def test_customer_without_record_sees_nothing(client, as_user):
    assert client.get("/api/orders", headers=as_user("customer")).json() == []


def test_customer_sees_only_own_repairs(client, db, as_user):
    own = add_customer(db, "First Customer")
    customer_headers = login(client, "customer")
    other = add_customer(db, "Second Customer")
    mine = Repair(device_name="iPhone 13", customer_id=own.id)
    theirs = Repair(device_name="Galaxy S22", customer_id=other.id)
    walk_in = Repair(device_name="iPad Air")
    db.add_all([mine, theirs, walk_in])
    db.commit()

    listed = client.get("/api/repairs", headers=customer_headers).json()
    assert [r["id"] for r in listed] == [mine.id]
    assert client.get(f"/api/repairs/{mine.id}", headers=customer_headers).status_code == 200
    assert client.get(f"/api/repairs/{theirs.id}", headers=customer_headers).status_code == 404
    assert client.get(f"/api/repairs/{walk_in.id}", headers=customer_headers).status_code == 404

    assert len(client.get("/api/repairs", headers=as_user("admin")).json()) == 3


def test_customer_without_record_sees_no_repairs(client, db, as_user):
    walk_in = Repair(device_name="iPad Air")
    db.add(walk_in)
    db.commit()
    customer_headers = as_user("customer")
    assert client.get("/api/repairs", headers=customer_headers).json() == []
    assert client.get(f"/api/repairs/{walk_in.id}", headers=customer_headers).status_code == 404


def test_customer_submits_leads_but_cannot_read_them(client, db, as_user):
    lead = Lead(name="Walk-in Enquiry", email="walkin@example.com")
    db.add(lead)
    db.commit()
    customer_headers = as_user("customer")

    created = client.post("/api/leads", json={"name": "Web Visitor"}, headers=customer_headers)
    assert created.status_code == 201

    assert client.get("/api/leads", headers=customer_headers).status_code == 403
    assert client.get(f"/api/leads/{lead.id}", headers=customer_headers).status_code == 403
    assert client.get(f"/api/leads/{created.json()['id']}", headers=customer_headers).status_code == 403
    response = client.put(f"/api/leads/{lead.id}", json={"status": "Lost"}, headers=customer_headers)
    assert response.status_code == 403
    db.expire_all()
    assert db.get(Lead, lead.id).status == "New"

    assert len(client.get("/api/leads", headers=as_user("salesman")).json()) == 2

from crm.models.customer import Customer
from crm.models.product import Product
from crm.models.order import Order, OrderItem
from crm.models.repair import Repair
from crm.models.appointment import Appointment
from crm.models.lead import Lead

__all__ = ["Customer", "Product", "Order", "OrderItem", "Repair", "Appointment", "Lead"]

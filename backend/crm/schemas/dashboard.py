from crm.schemas.base import APIModel


class DashboardStats(APIModel):
    total_customers: int
    total_products: int
    low_stock_products: int
    active_repairs: int
    total_revenue: int  # cents
    monthly_revenue: int  # cents
    new_leads: int

"""
URL routing for catalog API endpoints.

Public, read-only and CORS-enabled, except the staff customer lookup.
"""

from django.urls import path

from apps.web.catalog import views

app_name = "catalog"

urlpatterns = [
    path("products", views.product_list, name="product_list"),
    path("floors", views.floor_list, name="floor_list"),
    path("tables", views.table_list, name="table_list"),
    path("status", views.store_status, name="store_status"),
    path("staff/customers", views.staff_customer_list, name="staff_customer_list"),
]

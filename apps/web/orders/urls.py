"""
URL routing for cart, checkout and order endpoints.
"""

from django.urls import path

from apps.web.orders import views

app_name = "orders"

urlpatterns = [
    path("cart", views.cart_detail, name="cart_detail"),
    path("cart/items", views.cart_add_item, name="cart_add_item"),
    path("cart/items/<int:product_id>", views.cart_item, name="cart_item"),
    path("checkout", views.checkout, name="checkout"),
    path("orders/<int:order_id>", views.order_detail, name="order_detail"),
    path("staff/orders", views.staff_customer_orders, name="staff_customer_orders"),
    path("staff/orders/latest", views.staff_latest_order, name="staff_latest_order"),
]

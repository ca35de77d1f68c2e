"""
Cart and checkout API views.

The cart is kept in the caller's signed session cookie; every mutation is
re-priced from the ERP catalog. Checkout requires an Idempotency-Key header
and creates at most one ERP order per key.
"""

from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied
from django.http import Http404, HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from ram_schemas import Cart

from apps.web.catalog.reader import CatalogReader
from apps.web.core.decorators import idempotency_key_required, storefront_errors
from apps.web.core.http import parse_body, parse_data, schema_response
from apps.web.erp.conf import run_with_client
from apps.web.orders.cart import CartService, load_cart, save_cart
from apps.web.orders.orchestrator import OrderOrchestrator
from apps.web.orders.serializers import (
    CartItemAddRequest,
    CartItemUpdateRequest,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
    CustomerOrdersQuery,
    CustomerOrdersResponse,
    LatestOrderQuery,
    OrderResponse,
)

# Orders placed from this session, so the session can look them up again
SESSION_ORDERS_KEY = "order_ids"
MAX_SESSION_ORDERS = 20


def _cart_response(request: HttpRequest, cart: Cart, status: int = 200) -> JsonResponse:
    save_cart(request, cart)
    return schema_response(CartResponse.from_cart(cart), status=status)


# =============================================================================
# Cart
# =============================================================================


@csrf_exempt
@require_http_methods(["GET", "DELETE"])
def cart_detail(request: HttpRequest) -> JsonResponse:
    """
    GET /api/cart     - current cart
    DELETE /api/cart  - clear the cart
    """
    cart = load_cart(request)
    if request.method == "DELETE":
        cart = CartService.clear(cart)
    return _cart_response(request, cart)


@csrf_exempt
@require_POST
@storefront_errors
def cart_add_item(request: HttpRequest) -> JsonResponse:
    """
    POST /api/cart/items

    Add a product to the cart (merging with an existing line).
    Request body: CartItemAddRequest
    """
    body = parse_body(request, CartItemAddRequest)
    cart = load_cart(request)
    cart = run_with_client(
        lambda erp: CartService(CatalogReader(erp)).add_item(
            cart, body.product_id, body.quantity
        )
    )
    return _cart_response(request, cart)


@csrf_exempt
@require_http_methods(["PUT", "DELETE"])
@storefront_errors
def cart_item(request: HttpRequest, product_id: int) -> JsonResponse:
    """
    PUT /api/cart/items/{product_id}     - set quantity
    DELETE /api/cart/items/{product_id}  - remove line
    """
    cart = load_cart(request)
    if request.method == "DELETE":
        return _cart_response(request, CartService.remove_item(cart, product_id))

    body = parse_body(request, CartItemUpdateRequest)
    cart = run_with_client(
        lambda erp: CartService(CatalogReader(erp)).update_item(
            cart, product_id, body.quantity
        )
    )
    return _cart_response(request, cart)


# =============================================================================
# Checkout and orders
# =============================================================================


@csrf_exempt
@require_POST
@idempotency_key_required
@storefront_errors
def checkout(request: HttpRequest) -> JsonResponse:
    """
    POST /api/checkout

    Turn the session cart into an ERP order.

    Request body: CheckoutRequest schema
    Response: CheckoutResponse (201), ValidationErrorResponse (400),
        StaleCartResponse / ErrorResponse (409), TryAgainResponse (502/503)
    """
    body = parse_body(request, CheckoutRequest)
    cart = load_cart(request)
    try:
        order = run_with_client(
            lambda erp: OrderOrchestrator(erp).checkout(
                cart,
                body.payment_code,
                request.idempotency_key,  # type: ignore[attr-defined]
                customer=body.customer,
                note=body.note,
            )
        )
    finally:
        save_cart(request, cart)

    order_ids = [i for i in request.session.get(SESSION_ORDERS_KEY, []) if i != order.id]
    request.session[SESSION_ORDERS_KEY] = [*order_ids, order.id][-MAX_SESSION_ORDERS:]

    response = CheckoutResponse(
        order=OrderResponse.from_order(order),
        cart=CartResponse.from_cart(cart),
    )
    return schema_response(response, status=201)


@require_GET
@storefront_errors
def order_detail(request: HttpRequest, order_id: int) -> JsonResponse:
    """
    GET /api/orders/{order_id}

    Orders are visible to the session that placed them and to staff.
    """
    user = request.user
    placed_here = order_id in request.session.get(SESSION_ORDERS_KEY, [])
    if not placed_here and not (user.is_authenticated and user.is_staff):
        raise Http404(f"Order {order_id} not found")

    order = run_with_client(lambda erp: OrderOrchestrator(erp).get_order(order_id))
    if order is None:
        raise Http404(f"Order {order_id} not found")
    return schema_response(OrderResponse.from_order(order))


# =============================================================================
# Staff order history
# =============================================================================


def _require_staff(request: HttpRequest) -> None:
    if not request.user.is_staff:
        raise PermissionDenied("Staff access required")


@require_GET
@login_required
@storefront_errors
def staff_customer_orders(request: HttpRequest) -> JsonResponse:
    """
    GET /api/staff/orders?email=&limit=&offset=

    A customer's order history, newest first.
    """
    _require_staff(request)
    query = parse_data(request.GET.dict(), CustomerOrdersQuery)
    orders, total = run_with_client(
        lambda erp: OrderOrchestrator(erp).list_for_customer(
            query.email, limit=query.limit, offset=query.offset
        )
    )
    return schema_response(
        CustomerOrdersResponse(
            orders=[OrderResponse.from_order(o) for o in orders],
            total=total,
            limit=query.limit,
            offset=query.offset,
        )
    )


@require_GET
@login_required
@storefront_errors
def staff_latest_order(request: HttpRequest) -> JsonResponse:
    """
    GET /api/staff/orders/latest?email=

    The customer's most recent order, for tracking it from the counter.
    """
    _require_staff(request)
    query = parse_data(request.GET.dict(), LatestOrderQuery)
    order = run_with_client(lambda erp: OrderOrchestrator(erp).latest_for_customer(query.email))
    if order is None:
        raise Http404("No orders found")
    return schema_response(OrderResponse.from_order(order))

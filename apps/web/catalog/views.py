"""
Catalog API views - public read endpoints over ERP reference data.

These endpoints feed the storefront menu, the booking floor plan and the
staff customer lookup. Every request opens one ERP client and closes it.
"""

from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied
from django.http import HttpRequest, JsonResponse
from django.views.decorators.cache import cache_control
from django.views.decorators.http import require_GET

from apps.web.catalog.reader import CatalogReader
from apps.web.catalog.serializers import (
    CustomerListQuery,
    CustomerListResponse,
    FloorListResponse,
    ProductListQuery,
    ProductListResponse,
    StoreStatusResponse,
    TableListQuery,
    TableListResponse,
)
from apps.web.core.decorators import storefront_errors
from apps.web.core.http import parse_data, schema_response
from apps.web.erp.conf import run_with_client


@require_GET
@cache_control(max_age=60, public=True)
@storefront_errors
def product_list(request: HttpRequest) -> JsonResponse:
    """
    GET /api/products?q=&limit=&offset=

    Sellable products for the menu.
    """
    query = parse_data(request.GET.dict(), ProductListQuery)
    products = run_with_client(
        lambda erp: CatalogReader(erp).list_products(
            query=query.q, limit=query.limit, offset=query.offset
        )
    )
    return schema_response(
        ProductListResponse(products=products, limit=query.limit, offset=query.offset)
    )


@require_GET
@storefront_errors
def floor_list(_request: HttpRequest) -> JsonResponse:
    """GET /api/floors"""
    floors = run_with_client(lambda erp: CatalogReader(erp).list_floors())
    return schema_response(FloorListResponse(floors=floors))


@require_GET
@storefront_errors
def table_list(request: HttpRequest) -> JsonResponse:
    """GET /api/tables?floor_id="""
    query = parse_data(request.GET.dict(), TableListQuery)
    tables = run_with_client(
        lambda erp: CatalogReader(erp).list_tables(floor_id=query.floor_id)
    )
    return schema_response(TableListResponse(tables=tables))


@require_GET
@cache_control(max_age=30, public=True)
@storefront_errors
def store_status(_request: HttpRequest) -> JsonResponse:
    """
    GET /api/status

    Whether the restaurant is taking online orders (an open POS session exists).
    """
    session = run_with_client(lambda erp: CatalogReader(erp).find_open_session())
    if session is None:
        return schema_response(
            StoreStatusResponse(
                is_open=False, message="The restaurant is currently closed."
            )
        )
    return schema_response(
        StoreStatusResponse(is_open=True, message="The restaurant is open for orders.")
    )


@require_GET
@login_required
@storefront_errors
def staff_customer_list(request: HttpRequest) -> JsonResponse:
    """
    GET /api/staff/customers?q=

    Customer lookup for staff. Requires an authenticated staff user.
    """
    if not request.user.is_staff:
        raise PermissionDenied("Staff access required")

    query = parse_data(request.GET.dict(), CustomerListQuery)
    customers = run_with_client(
        lambda erp: CatalogReader(erp).list_customers(
            query=query.q, limit=query.limit, offset=query.offset
        )
    )
    return schema_response(CustomerListResponse(customers=customers))

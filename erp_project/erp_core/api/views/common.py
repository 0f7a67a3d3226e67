from rest_framework import exceptions

from ...models import Product


def get_for_org(model, organization, pk, label=None, queryset=None):
    """Fetch one row inside the organization or 404."""
    if queryset is None:
        queryset = model.objects.for_organization(organization)
    try:
        obj = queryset.filter(pk=pk).first()
    except (TypeError, ValueError):
        obj = None
    if obj is None:
        raise exceptions.NotFound(f"{label or model._meta.verbose_name.title()} not found")
    return obj


def require_fields(data, *names):
    missing = [name for name in names if data.get(name) in (None, "")]
    if missing:
        raise exceptions.ValidationError(f"Missing required fields: {', '.join(missing)}")


def product_from(data, organization):
    """Costing payloads reference products by `product_id`."""
    return get_for_org(Product, organization, data.get("product_id"), "Product")


def context_for(request, organization):
    return {"request": request, "organization": organization}


def query_id(request, name):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise exceptions.ParseError(f"{name} must be an integer")

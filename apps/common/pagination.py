from django.core.paginator import Paginator

from .utils import parse_int


def paginate(queryset, request, total_key="totalItems", default_limit=10, max_limit=100):
    """
    Page a queryset from ?page=&limit= and return (items, pagination).

    Out-of-range pages return an empty item list rather than an error.
    """
    page_number = parse_int(request.query_params.get("page"), 1)
    limit = parse_int(request.query_params.get("limit"), default_limit, maximum=max_limit)

    paginator = Paginator(queryset, limit)
    total_pages = paginator.num_pages if paginator.count else 0
    if page_number <= paginator.num_pages:
        items = list(paginator.page(page_number).object_list)
    else:
        items = []

    pagination = {
        "currentPage": page_number,
        "totalPages": total_pages,
        total_key: paginator.count,
        "hasNext": page_number < total_pages,
        "hasPrev": page_number > 1,
    }
    return items, pagination

from django.core.paginator import EmptyPage, Paginator


def _positive_int(value, default):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def paginate(queryset, request, default_limit=10, max_limit=100):
    """Slice a queryset by ?page=&limit= and return (items, pagination meta)."""
    page_number = _positive_int(request.query_params.get('page'), 1)
    limit = min(_positive_int(request.query_params.get('limit'), default_limit), max_limit)

    paginator = Paginator(queryset, limit)
    try:
        page = paginator.page(page_number)
        items = list(page.object_list)
    except EmptyPage:
        items = []

    return items, {
        'total': paginator.count,
        'page': page_number,
        'limit': limit,
        'pages': paginator.num_pages if paginator.count else 0,
    }

"""
ResidentOne
Blueprint registry: stage (phase workflow) and studio (team, projects, rooms).
"""

from flask import request


def paginate_query(query, default_limit=50, max_limit=500):
    """Apply ?limit=&offset= to a SQLAlchemy query.

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    limit = request.args.get("limit", default_limit, type=int) or default_limit
    offset = request.args.get("offset", 0, type=int) or 0
    items = query.limit(min(max(limit, 1), max_limit)).offset(max(offset, 0)).all()
    return items, total

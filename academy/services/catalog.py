"""Course catalog search, filtering and sorting over in-memory course dicts."""

from datetime import datetime, timezone

POPULAR_SEARCHES = [
    'Python', 'Machine Learning', 'Data Science', 'React', 'JavaScript',
    'Web Development', 'AI', 'Database', 'Cloud Computing',
]

SORT_OPTIONS = {
    'popular': 'Most popular',
    'rating': 'Highest rated',
    'newest': 'Newest',
    'price_low': 'Price: low to high',
    'price_high': 'Price: high to low',
    'title': 'Title (A-Z)',
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _text(value):
    return (value or '').lower()


def matches_query(course, query):
    """Case-insensitive substring match over the searchable course fields."""
    needle = (query or '').strip().lower()
    if not needle:
        return True
    if needle in _text(course.get('title')):
        return True
    if needle in _text(course.get('instructor_name')):
        return True
    if needle in _text(course.get('category')):
        return True
    if any(needle in _text(tag) for tag in course.get('tags') or []):
        return True
    return needle in _text(course.get('description'))


def filter_courses(courses, query=None, category='all', level='all',
                   availability='all', price='all'):
    results = []
    for course in courses:
        if not matches_query(course, query):
            continue
        if category and category != 'all' and _text(course.get('category')) != category.lower():
            continue
        if level and level != 'all' and _text(course.get('level')) != level.lower():
            continue
        available = course.get('available', True)
        if availability == 'available' and not available:
            continue
        if availability == 'coming-soon' and available:
            continue
        is_free = not course.get('price')
        if price == 'free' and not is_free:
            continue
        if price == 'paid' and is_free:
            continue
        results.append(course)
    return results


def sort_courses(courses, sort_by='popular'):
    if sort_by == 'rating':
        return sorted(courses, key=lambda c: (c.get('rating') or 0, c.get('total_ratings') or 0), reverse=True)
    if sort_by == 'newest':
        return sorted(courses, key=lambda c: c.get('created_at') or _EPOCH, reverse=True)
    if sort_by == 'price_low':
        return sorted(courses, key=lambda c: c.get('price') or 0)
    if sort_by == 'price_high':
        return sorted(courses, key=lambda c: c.get('price') or 0, reverse=True)
    if sort_by == 'title':
        return sorted(courses, key=lambda c: _text(c.get('title')))
    return sorted(courses, key=lambda c: c.get('total_students') or 0, reverse=True)


def suggest(courses, query, limit=6):
    """Autocomplete suggestions; empty for a blank query."""
    if not (query or '').strip():
        return []
    return [c for c in courses if matches_query(c, query)][:limit]


def popular_courses(courses, limit=5):
    return sort_courses(courses, 'popular')[:limit]


def categories(courses):
    return sorted({c['category'] for c in courses if c.get('category')})


def remember_search(history, term, limit=5):
    """Most-recent-first search history without duplicates."""
    term = (term or '').strip()
    history = list(history or [])
    if not term:
        return history[:limit]
    return ([term] + [s for s in history if s != term])[:limit]


def wishlist_total(courses):
    return sum(c.get('price') or 0 for c in courses)

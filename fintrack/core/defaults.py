"""Default categories seeded into an empty store."""

from fintrack.models.records import Category, CategoryDomain


# (name, icon) in display order
DEFAULT_EXPENSE_CATEGORIES = [
    ("Food", "🍔"),
    ("Transportation", "🚗"),
    ("Housing", "🏠"),
    ("Bills & Utilities", "💡"),
    ("Entertainment", "🎬"),
    ("Health & Wellness", "❤️"),
    ("Shopping", "🛍️"),
    ("Education", "📚"),
    ("Travel", "✈️"),
    ("Other", "🤷"),
]

DEFAULT_INCOME_CATEGORIES = [
    ("Salary", "💰"),
    ("Freelance", "💼"),
    ("Investments", "📈"),
    ("Gifts", "🎁"),
    ("Other", "🤷"),
]


def default_categories() -> list[Category]:
    """Fresh Category instances (new ids) for every default."""
    categories = []
    for domain, entries in (
        (CategoryDomain.EXPENSE, DEFAULT_EXPENSE_CATEGORIES),
        (CategoryDomain.INCOME, DEFAULT_INCOME_CATEGORIES),
    ):
        for order, (name, icon) in enumerate(entries):
            categories.append(Category(
                name=name,
                domain=domain,
                icon=icon,
                order=order,
                is_default=True,
            ))
    return categories

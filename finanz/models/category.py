"""
Category Models

Categories form a one-level tree: a category with a parent_id is a
subcategory and cannot have children of its own.

There are two pools. The built-in defaults are used as long as the user has
not created any category; as soon as one custom category exists, the custom
set replaces the defaults entirely. The two pools are never merged.
"""

from typing import Iterable, Optional, Union
from uuid import NAMESPACE_URL, UUID, uuid4, uuid5

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


FALLBACK_EMOJI = "📦"

_DEFAULT_NAMESPACE = uuid5(NAMESPACE_URL, "finanzapp:categories")


class CategoryError(ValueError):
    """A category operation would break the category rules."""
    pass


class Category(BaseModel):
    """A transaction category or subcategory."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        frozen=True,
    )

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=60)
    emoji: str = Field(default=FALLBACK_EMOJI, min_length=1, max_length=16)
    parent_id: Optional[UUID] = Field(
        default=None,
        validation_alias=AliasChoices("parent_id", "parentID"),
        description="Parent category; None for a top-level category",
    )

    @model_validator(mode="after")
    def check_not_own_parent(self) -> "Category":
        if self.parent_id is not None and self.parent_id == self.id:
            raise ValueError("A category cannot be its own parent")
        return self

    @property
    def is_subcategory(self) -> bool:
        return self.parent_id is not None


def _default(name: str, emoji: str) -> Category:
    return Category(id=uuid5(_DEFAULT_NAMESPACE, name), name=name, emoji=emoji)


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    _default("Groceries", "🛒"),
    _default("Transport", "🚗"),
    _default("Housing", "🏠"),
    _default("Salary", "💰"),
    _default("Healthcare", "🏥"),
    _default("Entertainment", "🎮"),
    _default("Clothing", "👕"),
    _default("Subscriptions", "📱"),
    _default("Travel", "✈️"),
    _default("Other", "📦"),
)


class CategoryBook:
    """
    The user's custom categories plus lookup over the active pool.

    Mutations only touch the custom set; the defaults are read-only.
    """

    def __init__(self, custom: Optional[Iterable[Category]] = None):
        self._custom: list[Category] = list(custom or [])

    @property
    def custom(self) -> list[Category]:
        return list(self._custom)

    def all_categories(self) -> list[Category]:
        """Custom set if non-empty, otherwise the built-in defaults."""
        if self._custom:
            return list(self._custom)
        return list(DEFAULT_CATEGORIES)

    def top_level(self) -> list[Category]:
        return [c for c in self.all_categories() if c.parent_id is None]

    def subcategories(self, parent_id: UUID) -> list[Category]:
        return [c for c in self.all_categories() if c.parent_id == parent_id]

    def get(self, category_id: UUID) -> Optional[Category]:
        for category in self.all_categories():
            if category.id == category_id:
                return category
        return None

    def find_by_name(self, name: str) -> Optional[Category]:
        wanted = name.strip().casefold()
        for category in self.all_categories():
            if category.name.casefold() == wanted:
                return category
        return None

    def resolve(self, reference: Union[UUID, str, None]) -> Optional[Category]:
        """Look a category up by id or by display name."""
        if reference is None:
            return None
        if isinstance(reference, UUID):
            return self.get(reference)
        return self.find_by_name(reference)

    def emoji_for(self, reference: Union[UUID, str, None]) -> str:
        """Emoji for a category reference; unknown references get the fallback."""
        category = self.resolve(reference)
        return category.emoji if category else FALLBACK_EMOJI

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _custom_by_id(self, category_id: UUID) -> Optional[Category]:
        for category in self._custom:
            if category.id == category_id:
                return category
        return None

    def _check_parent(self, category: Category) -> None:
        if category.parent_id is None:
            return
        parent = self._custom_by_id(category.parent_id)
        if parent is None:
            raise CategoryError(f"Parent category not found: {category.parent_id}")
        if parent.parent_id is not None:
            raise CategoryError(
                f"'{parent.name}' is a subcategory and cannot have subcategories"
            )

    def add(self, category: Category) -> Category:
        """
        Add a custom category.

        While the custom set is empty the defaults are the active pool, so a
        default may serve as parent. It is copied into the custom set first.
        """
        if self._custom_by_id(category.id) is not None:
            raise CategoryError(f"Category already exists: {category.id}")
        seeded = None
        if not self._custom and category.parent_id is not None:
            seeded = next(
                (c for c in DEFAULT_CATEGORIES if c.id == category.parent_id), None
            )
        if seeded is not None:
            self._custom.append(seeded)
        self._check_parent(category)
        self._custom.append(category)
        return category

    def update(self, category: Category) -> Category:
        """Replace a custom category by id."""
        existing = self._custom_by_id(category.id)
        if existing is None:
            raise CategoryError(f"Category not found: {category.id}")
        self._check_parent(category)
        if category.parent_id is not None and any(
            c.parent_id == category.id for c in self._custom
        ):
            raise CategoryError(
                f"'{existing.name}' has subcategories and cannot become one"
            )
        self._custom = [category if c.id == category.id else c for c in self._custom]
        return category

    def delete(self, category_id: UUID) -> list[Category]:
        """
        Delete a category and its subcategories.

        Returns the removed categories (empty if the id is unknown).
        """
        removed = [
            c for c in self._custom
            if c.id == category_id or c.parent_id == category_id
        ]
        removed_ids = {c.id for c in removed}
        self._custom = [c for c in self._custom if c.id not in removed_ids]
        return removed

"""Tests for depth-bounded relationship loading."""
from typing import Any, Callable

import pytest
from pydantic import BaseModel
from structlog.testing import capture_logs

from resource_query.config.settings import Settings
from resource_query.core.backend import DatabaseBackend
from resource_query.repositories.base import ResourceRepository
from resource_query.resources.catalog import ColumnCatalog, ColumnKind, ColumnRef
from resource_query.resources.definition import Resource
from resource_query.resources.joins import Cardinality, JoinSpec, RelationshipGraph
from resource_query.services.relationship_loader import RelationshipLoader


class ReviewOut(BaseModel):
    id: int
    book_id: int
    rating: int


class BookOut(BaseModel):
    id: int
    author_id: int
    title: str
    reviews: list[ReviewOut] = []
    author: "AuthorOut | None" = None


class AuthorOut(BaseModel):
    id: int
    name: str
    books: list[BookOut] = []


BookOut.model_rebuild()

AUTHORS = [{"id": 1, "name": "Le Guin"}, {"id": 2, "name": "Herbert"}]
BOOKS = [
    {"id": 10, "author_id": 1, "title": "The Dispossessed"},
    {"id": 11, "author_id": 1, "title": "The Lathe of Heaven"},
    {"id": 20, "author_id": 2, "title": "Dune"},
]
REVIEWS = [
    {"id": 100, "book_id": 10, "rating": 5},
    {"id": 101, "book_id": 10, "rating": 4},
    {"id": 200, "book_id": 20, "rating": 5},
]


class MockRepository(ResourceRepository[dict, int]):
    """In-memory repository resolving relations through plain functions."""

    backend = DatabaseBackend.SQLITE

    def __init__(self, rows: list[dict], relations: dict[str, Callable[[dict], Any]]):
        self.rows = rows
        self.relations = relations
        self.related_calls: list[tuple[int, str]] = []

    async def fetch_all(self, condition, sort, offset, limit, joined_filters=()):
        return self.rows[offset:offset + limit]

    async def fetch_one(self, id):
        return next((row for row in self.rows if row["id"] == id), None)

    async def count(self, condition, joined_filters=()):
        return len(self.rows)

    async def fetch_related(self, row, relation):
        self.related_calls.append((row["id"], relation))
        return self.relations[relation](row)


class Library:
    """Authors, books and reviews wired as resources with configurable joins."""

    def __init__(
        self,
        books_depth: int | None = None,
        books_on_all: bool = True,
        author_depth: int | None = None,
        failing_book_ids: tuple[int, ...] = (),
    ):
        def reviews_of(book):
            if book["id"] in failing_book_ids:
                raise RuntimeError("reviews unavailable")
            return [r for r in REVIEWS if r["book_id"] == book["id"]]

        self.author_repo = MockRepository(AUTHORS, {
            "books": lambda author: [b for b in BOOKS if b["author_id"] == author["id"]],
        })
        self.book_repo = MockRepository(BOOKS, {
            "reviews": reviews_of,
            "author": lambda book: next(a for a in AUTHORS if a["id"] == book["author_id"]),
        })
        self.review_repo = MockRepository(REVIEWS, {})

        self.authors = Resource(
            name="authors",
            catalog=ColumnCatalog([ColumnRef("id", ColumnKind.NUMBER), ColumnRef("name")]),
            response_model=AuthorOut,
            repository_factory=lambda session: self.author_repo,
            joins=RelationshipGraph([
                JoinSpec("books", target=lambda: self.books, on_one=True, on_all=books_on_all, depth=books_depth),
            ]),
        )
        self.books = Resource(
            name="books",
            catalog=ColumnCatalog([
                ColumnRef("id", ColumnKind.NUMBER),
                ColumnRef("author_id", ColumnKind.NUMBER),
                ColumnRef("title"),
            ]),
            response_model=BookOut,
            repository_factory=lambda session: self.book_repo,
            joins=RelationshipGraph([
                JoinSpec("reviews", target=lambda: self.reviews, on_all=True),
                JoinSpec("author", target=lambda: self.authors, cardinality=Cardinality.ONE,
                         on_all=True, depth=author_depth),
            ]),
        )
        self.reviews = Resource(
            name="reviews",
            catalog=ColumnCatalog([
                ColumnRef("id", ColumnKind.NUMBER),
                ColumnRef("book_id", ColumnKind.NUMBER),
                ColumnRef("rating", ColumnKind.NUMBER),
            ]),
            response_model=ReviewOut,
            repository_factory=lambda session: self.review_repo,
        )


@pytest.fixture
def loader_settings():
    return Settings(default_join_depth=1, max_join_depth=5)


async def _load_author(library: Library, settings: Settings, author_id: int = 1) -> AuthorOut:
    row = next(a for a in AUTHORS if a["id"] == author_id)
    loader = RelationshipLoader(session=None, settings=settings)
    return await loader.load_one(library.authors, library.authors.build_entity(row), row)


class TestDepthBudget:
    """Test how far relationship loading recurses."""

    @pytest.mark.asyncio
    async def test_default_depth_loads_one_level(self, loader_settings):
        """Depth 1 loads the related books but nothing below them."""
        author = await _load_author(Library(), loader_settings)

        assert [b.title for b in author.books] == ["The Dispossessed", "The Lathe of Heaven"]
        assert all(b.reviews == [] and b.author is None for b in author.books)

    @pytest.mark.asyncio
    async def test_depth_zero_loads_immediate_relation(self, loader_settings):
        author = await _load_author(Library(books_depth=0), loader_settings)

        assert len(author.books) == 2
        assert all(b.reviews == [] for b in author.books)

    @pytest.mark.asyncio
    async def test_depth_two_loads_grandchildren(self, loader_settings):
        """Nested joins are loaded with the remaining budget, whatever their own depth."""
        author = await _load_author(Library(books_depth=2), loader_settings)

        dispossessed = author.books[0]
        assert [r.id for r in dispossessed.reviews] == [100, 101]
        assert dispossessed.author.name == "Le Guin"
        assert dispossessed.author.books == []

    @pytest.mark.asyncio
    async def test_cycle_is_bounded_by_depth(self, loader_settings):
        """authors -> books -> author -> books stops when the budget runs out."""
        author = await _load_author(Library(books_depth=3), loader_settings)

        back_reference = author.books[0].author
        assert [b.id for b in back_reference.books] == [10, 11]
        assert all(b.author is None and b.reviews == [] for b in back_reference.books)

    @pytest.mark.asyncio
    async def test_nested_depth_only_lowers_budget(self, loader_settings):
        author = await _load_author(Library(books_depth=3, author_depth=0), loader_settings)

        book = author.books[0]
        assert book.author.name == "Le Guin"
        assert book.author.books == []
        assert len(book.reviews) == 2

    @pytest.mark.asyncio
    async def test_depth_above_maximum_is_capped(self, loader_settings):
        library = Library(books_depth=10)
        loader = RelationshipLoader(session=None, settings=loader_settings)

        with capture_logs() as logs:
            budget = loader.root_budget(library.authors, library.authors.joins.get("books"))

        assert budget == 5
        capped = [entry for entry in logs if entry["event"] == "join_depth_capped"]
        assert capped and capped[0]["requested"] == 10


class TestModes:
    """Test which join fields each fetch mode populates."""

    @pytest.mark.asyncio
    async def test_single_only_join_skipped_in_list_mode(self, loader_settings):
        library = Library(books_on_all=False)
        loader = RelationshipLoader(session=None, settings=loader_settings)
        pairs = [(library.authors.build_list_entity(row), row) for row in AUTHORS]

        authors = await loader.load_many(library.authors, pairs)

        assert [a.name for a in authors] == ["Le Guin", "Herbert"]
        assert all(a.books == [] for a in authors)
        assert library.author_repo.related_calls == []

    @pytest.mark.asyncio
    async def test_list_mode_loads_list_joins(self, loader_settings):
        library = Library()
        loader = RelationshipLoader(session=None, settings=loader_settings)
        pairs = [(library.books.build_list_entity(row), row) for row in BOOKS]

        books = await loader.load_many(library.books, pairs)

        assert [len(b.reviews) for b in books] == [2, 0, 1]
        assert [b.author.name for b in books] == ["Le Guin", "Le Guin", "Herbert"]

    @pytest.mark.asyncio
    async def test_single_related_entity(self, loader_settings):
        library = Library()
        loader = RelationshipLoader(session=None, settings=loader_settings)
        row = BOOKS[2]

        book = await loader.load_one(library.books, library.books.build_entity(row), row)

        assert isinstance(book.author, AuthorOut)
        assert book.author.id == 2


class TestFailures:
    """Test degradation when a relation cannot be loaded."""

    @pytest.mark.asyncio
    async def test_nested_failure_leaves_field_empty(self, loader_settings):
        """Only the failing field degrades; sibling fields and siblings still load."""
        library = Library(books_depth=2, failing_book_ids=(10,))

        with capture_logs() as logs:
            author = await _load_author(library, loader_settings)

        failed, other = author.books
        assert failed.id == 10
        assert failed.reviews == []
        assert failed.author.name == "Le Guin"
        assert other.author.name == "Le Guin"
        fallbacks = [entry for entry in logs if entry["event"] == "relationship_load_fallback"]
        assert len(fallbacks) == 1
        assert fallbacks[0]["resource"] == "books"
        assert fallbacks[0]["field"] == "reviews"

    @pytest.mark.asyncio
    async def test_root_level_failure_keeps_parent(self, loader_settings):
        library = Library(failing_book_ids=(20,))
        loader = RelationshipLoader(session=None, settings=loader_settings)
        row = BOOKS[2]

        with capture_logs() as logs:
            book = await loader.load_one(library.books, library.books.build_entity(row), row)

        assert book.title == "Dune"
        assert book.reviews == []
        assert book.author.name == "Herbert"
        assert [entry["error_type"] for entry in logs if entry["event"] == "relationship_load_fallback"] == [
            "RuntimeError"
        ]

    @pytest.mark.asyncio
    async def test_invalid_related_row_is_skipped(self, loader_settings):
        library = Library()
        library.book_repo.relations["reviews"] = lambda book: [
            {"id": 1, "book_id": book["id"], "rating": "five stars"},
            {"id": 2, "book_id": book["id"], "rating": 3},
        ]
        loader = RelationshipLoader(session=None, settings=loader_settings)
        row = BOOKS[2]

        with capture_logs() as logs:
            book = await loader.load_one(library.books, library.books.build_entity(row), row)

        assert [r.id for r in book.reviews] == [2]
        skipped = [entry for entry in logs if entry["event"] == "related_entity_skipped"]
        assert len(skipped) == 1
        assert skipped[0]["resource"] == "reviews"

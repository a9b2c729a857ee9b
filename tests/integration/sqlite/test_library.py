"""Book/author round trips against an in-memory SQLite database."""
import datetime

import pytest
from library import AUTHOR_DCTOR, AUTHOR_PARSER, BOOK_PARSER, SELECT_ALL_BOOKS, Author
from library import Book, INSERT_AUTHOR, insert_author, insert_book, sample_books
from library import select_all, select_book
from rowbind import BindingError, CardinalityError, IntegrityError, Query, values
from rowbind.parser import integer, scalar, string


def test_select_all_returns_inserted_books(loaded_library):
    cn, books = loaded_library
    assert select_all(cn) == set(books.values())


def test_select_by_id(loaded_library):
    cn, books = loaded_library
    for book_id, book in books.items():
        assert select_book(book_id, cn) == book


def test_select_non_matching_id(loaded_library):
    cn, _ = loaded_library
    assert select_book(-1, cn) is None
    assert Query.of('SELECT * FROM book WHERE id = :id').on(id=-1).fetch(BOOK_PARSER.list(), cn) == []


def test_single_requires_exactly_one_row(loaded_library):
    cn, _ = loaded_library
    with pytest.raises(CardinalityError):
        SELECT_ALL_BOOKS.fetch(BOOK_PARSER.single(), cn)
    with pytest.raises(CardinalityError):
        Query.of('SELECT * FROM book WHERE id = -1').fetch(BOOK_PARSER.single(), cn)


def test_shared_author_inserted_once(loaded_library):
    cn, _ = loaded_library
    names = Query.of('SELECT name FROM author ORDER BY name').fetch(string('name').list(), cn)
    assert names == ['J. R. R. Tolkien', 'Neil Gaiman', 'Terry Pratchett']
    links = Query.of('SELECT count(*) FROM book_author').fetch(scalar().single(), cn)
    assert links == 4


def test_insert_author_returns_existing_id(library_conn):
    author = Author('Ursula K. Le Guin', datetime.date(1929, 10, 21))
    first = insert_author(author, library_conn)
    assert insert_author(author, library_conn) == first
    assert isinstance(first, int)


def test_nested_parse_with_null_date(library_conn):
    INSERT_AUTHOR.on_record(Author('A. Author'), AUTHOR_DCTOR).execute_insert(library_conn)
    query = Query.of('SELECT name, birth_day FROM author WHERE name = :name')
    author = query.on(name='A. Author').fetch(AUTHOR_PARSER.single(), library_conn)
    assert author == Author('A. Author', None)
    assert author.birth_day is None


def test_round_trip_preserves_dates(library_conn):
    book = Book('Small Gods', '978-0552152976', 400, datetime.date(1992, 5, 14),
                frozenset({Author('Terry Pratchett', datetime.date(1948, 4, 28))}))
    book_id = insert_book(book, library_conn)
    found = select_book(book_id, library_conn)
    assert found == book
    assert isinstance(found.published_at, datetime.date)


def test_book_without_authors(library_conn):
    book = Book('Anonymous', '000-0000000000', 10, datetime.date(2000, 1, 1))
    assert select_book(insert_book(book, library_conn), library_conn) == book


def test_duplicate_isbn_is_driver_error(loaded_library):
    cn, books = loaded_library
    with pytest.raises(IntegrityError):
        insert_book(next(iter(books.values())), cn)


def test_missing_placeholder_is_binding_error(library_conn):
    query = Query.of('SELECT * FROM book WHERE title = :title AND isbn = :isbn')
    with pytest.raises(BindingError, match='isbn'):
        query.on(title='Mort').fetch(BOOK_PARSER.list(), library_conn)


def test_unknown_parameter_is_binding_error(library_conn):
    query = Query.of('SELECT * FROM book WHERE title = :title')
    with pytest.raises(BindingError, match='isbn'):
        query.on(title='Mort', isbn='x').fetch(BOOK_PARSER.list(), library_conn)


def test_repeated_placeholder(loaded_library):
    cn, _ = loaded_library
    query = Query.of('SELECT count(*) FROM book WHERE pages > :n OR id = :n')
    assert query.on(n=300).fetch(integer(0).single(), cn) == 2


def test_in_clause(loaded_library):
    cn, books = loaded_library
    ids = list(books)[:2]
    query = Query.of('SELECT title FROM book WHERE id IN (:ids) ORDER BY id')
    titles = query.on(values('ids', ids)).fetch(string('title').list(), cn)
    assert titles == [books[i].title for i in ids]


def test_placeholder_like_text_in_literal(loaded_library):
    cn, _ = loaded_library
    query = Query.of("SELECT ':title' || title FROM book WHERE title = {title}")
    assert query.on(title='Mort').fetch(scalar().single(), cn) == ':titleMort'


def test_sample_books_are_distinct():
    books = sample_books()
    assert len({b.isbn for b in books}) == len(books)

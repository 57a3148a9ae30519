import pytest

from bookshelf.book import Book, MAX_TITLE_LEN
from bookshelf.exceptions import BookNotFoundError, CapacityExceededError, IncompleteLoadError
from bookshelf.library import Library, next_id


def test_add_list_and_find(lib):
    assert lib.list_books() == []

    book = lib.add_book("Ulysses", "James Joyce", 1922)

    assert book.id == 1
    assert book.borrowed is False
    assert lib.find_book(1) is book
    assert len(lib.list_books()) == 1
    assert lib.list_books()[0].title == "Ulysses"


def test_id_sequence_never_reuses_removed_ids(lib):
    dune = lib.add_book("Dune", "Herbert", 1965)
    foundation = lib.add_book("Foundation", "Asimov", 1951)
    assert (dune.id, dune.borrowed) == (1, False)
    assert foundation.id == 2

    assert lib.remove_book(1, confirmed=True) is True
    assert [b.title for b in lib.list_books()] == ["Foundation"]
    assert lib.list_books()[0].id == 2

    neuromancer = lib.add_book("Neuromancer", "Gibson", 1984)
    assert neuromancer.id == 3


def test_removing_highest_id_does_not_free_it(lib):
    lib.add_book("A", "X", 2000)
    lib.add_book("B", "Y", 2001)
    lib.remove_book(2)

    assert lib.add_book("C", "Z", 2002).id == 3


def test_next_id_function():
    assert next_id([]) == 1
    books = [Book(4, "a", "b", 1), Book(9, "c", "d", 2), Book(2, "e", "f", 3)]
    assert next_id(books) == 10


def test_remove_keeps_order_of_survivors(lib):
    for title in ["One", "Two", "Three", "Four"]:
        lib.add_book(title, "Author", 1999)

    lib.remove_book(2)

    assert [b.title for b in lib.list_books()] == ["One", "Three", "Four"]
    assert lib.find_book(2) is None
    with pytest.raises(BookNotFoundError):
        lib.index_of(2)


def test_remove_unconfirmed_is_noop(lib):
    lib.add_book("Keep Me", "Author", 2010)

    assert lib.remove_book(1, confirmed=False) is False
    assert len(lib) == 1
    assert lib.find_book(1).title == "Keep Me"


def test_remove_not_found(lib):
    with pytest.raises(BookNotFoundError, match="Book with ID 42 not found."):
        lib.remove_book(42)


def test_capacity_exceeded(data_file):
    lib = Library(data_file=data_file, capacity=2)
    lib.add_book("A", "X", 1)
    lib.add_book("B", "Y", 2)

    with pytest.raises(CapacityExceededError):
        lib.add_book("C", "Z", 3)
    assert len(lib) == 2
    assert lib.next_id == 3


def test_count_summary(lib):
    assert lib.count_summary() == {"total": 0, "available": 0, "borrowed": 0}
    lib.add_book("A", "X", 1)
    lib.add_book("B", "Y", 2)
    lib.books[1].borrowed = True

    assert lib.count_summary() == {"total": 2, "available": 1, "borrowed": 1}


def test_long_title_is_bounded(lib):
    book = lib.add_book("x" * 500, "Author", 2000)
    assert len(book.title) == MAX_TITLE_LEN


def test_persistence(data_file):
    lib = Library(data_file=data_file)
    lib.add_book("Sapiens", "Yuval Noah Harari", 2011)
    lib.save()

    lib2 = Library(data_file=data_file)
    assert len(lib2.list_books()) == 1
    assert lib2.find_book(1).title == "Sapiens"
    assert lib2.add_book("Homo Deus", "Yuval Noah Harari", 2015).id == 2


def test_missing_file_means_empty_catalog(data_file):
    lib = Library(data_file=data_file)
    assert lib.list_books() == []
    assert lib.last_load.found is False
    assert lib.next_id == 1


def test_reload_never_lowers_id_counter(lib):
    lib.add_book("A", "X", 1)
    lib.add_book("B", "Y", 2)
    lib.save()
    lib.remove_book(2)
    lib.add_book("C", "Z", 3)

    lib.load()

    assert lib.add_book("D", "W", 4).id == 4


def test_load_without_data_file():
    with pytest.raises(ValueError):
        Library().load()


def test_default_capacity_is_800():
    lib = Library()
    for i in range(800):
        lib.add_book(f"Title {i}", "Author", 2000)

    assert lib.is_full()
    with pytest.raises(CapacityExceededError, match="800 books"):
        lib.add_book("One too many", "Author", 2001)
    assert len(lib) == 800
    assert lib.next_id == 801


def test_save_refuses_to_overwrite_partial_load(data_file):
    original = "1;Dune;Herbert;1965;0\nGARBAGE\n3;Foundation;Asimov;1951;0\n"
    with open(data_file, "w", encoding="utf-8", newline="") as f:
        f.write(original)
    lib = Library(data_file=data_file)
    lib.add_book("Emma", "Austen", 1815)

    with pytest.raises(IncompleteLoadError, match="refusing to overwrite"):
        lib.save()
    with open(data_file, encoding="utf-8", newline="") as f:
        assert f.read() == original

    lib.save(force=True)
    lib.save()
    assert [b.title for b in Library(data_file=data_file).list_books()] == ["Dune", "Emma"]


def test_partial_load_may_be_saved_elsewhere(data_file, tmp_path):
    with open(data_file, "w", encoding="utf-8") as f:
        f.write("1;Dune;Herbert;1965;0\nGARBAGE\n")
    lib = Library(data_file=data_file)

    other = str(tmp_path / "other.txt")
    lib.save(other)

    assert [b.title for b in Library(data_file=other).list_books()] == ["Dune"]


def test_books_are_hashable():
    dune = Book(1, "Dune", "Herbert", 1965)

    assert {dune, dune.copy()} == {dune}
    assert hash(dune) == hash(dune.copy())

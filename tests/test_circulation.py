import pytest

from bookshelf.circulation import CirculationDesk
from bookshelf.exceptions import AlreadyBorrowedError, BookNotFoundError, NotBorrowedError


@pytest.fixture
def desk(lib):
    lib.add_book("Dune", "Herbert", 1965)
    lib.add_book("Foundation", "Asimov", 1951)
    lib.add_book("Neuromancer", "Gibson", 1984)
    return CirculationDesk(lib)


def test_borrow_marks_book(desk, lib):
    book = desk.borrow_book(2)

    assert book.borrowed is True
    assert lib.find_book(2).borrowed is True


def test_double_borrow_is_rejected(desk, lib):
    desk.borrow_book(1)
    before = lib.find_book(1).to_dict()

    with pytest.raises(AlreadyBorrowedError, match="already borrowed"):
        desk.borrow_book(1)
    assert lib.find_book(1).to_dict() == before


def test_return_is_inverse_of_borrow(desk, lib):
    before = lib.find_book(3).to_dict()

    desk.borrow_book(3)
    desk.return_book(3)

    assert lib.find_book(3).to_dict() == before


def test_return_not_borrowed(desk):
    with pytest.raises(NotBorrowedError, match="not currently borrowed"):
        desk.return_book(1)


def test_unknown_id(desk):
    with pytest.raises(BookNotFoundError):
        desk.borrow_book(99)
    with pytest.raises(BookNotFoundError):
        desk.return_book(99)


def test_available_and_borrowed_lists(desk):
    desk.borrow_book(1)
    desk.borrow_book(3)

    assert [b.id for b in desk.list_available()] == [2]
    assert [b.id for b in desk.list_borrowed()] == [1, 3]

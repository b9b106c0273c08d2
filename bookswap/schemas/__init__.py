from .user import User
from .book import Book, BookCreate
from .exchange import BookRequest, BookValueResponse, BookValueBreakdown
from .points import PointTransactionEntry, TransactionHistoryResponse

from .connection import get_db, get_engine, get_session_factory, init_db, check_connection, close_db, Base

# Import models so they are registered with Base
from .models import (
    UserProfileDB, CustomerDB, TeamDB, TeamMemberDB,
    OrderDB, OrderLineItemDB, OrderNoteDB,
    SalesTaskDB, TaskNoteDB,
    LeadDB, QuoteDB, JobDB, InvoiceDB,
)

__all__ = [
    'get_db', 'get_engine', 'get_session_factory', 'init_db', 'check_connection', 'close_db', 'Base',
    'UserProfileDB', 'CustomerDB', 'TeamDB', 'TeamMemberDB',
    'OrderDB', 'OrderLineItemDB', 'OrderNoteDB',
    'SalesTaskDB', 'TaskNoteDB',
    'LeadDB', 'QuoteDB', 'JobDB', 'InvoiceDB',
]
